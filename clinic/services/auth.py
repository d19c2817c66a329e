"""Login against the stored user accounts."""

from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from clinic.exceptions import AuthenticationError, RateLimitExceededError
from clinic.models.user import User
from clinic.services.persistence import PersistenceAdapter
from clinic.services.seed import DEFAULT_SEED, SeedData
from clinic.utils.logging import get_logger
from clinic.utils.security import verify_password

logger = get_logger(__name__)

USERS_KEY = "users"


class LoginRateLimiter:
    """Throttles failed login attempts per email using the limits library."""

    def __init__(self, attempts_per_minute: int = 5):
        """Initialize rate limiter.

        Args:
            attempts_per_minute: Failed attempts allowed per email per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)
        self.limit = parse(f"{attempts_per_minute}/minute")

    def check(self, identifier: str) -> None:
        """Raise if ``identifier`` already used up its failed attempts."""
        if not self.limiter.test(self.limit, identifier):
            logger.warning(f"Login rate limit exceeded for {identifier}")
            raise RateLimitExceededError("Too many failed login attempts. Please try again later.")

    def record_failure(self, identifier: str) -> None:
        """Count one failed attempt against ``identifier``."""
        self.limiter.hit(self.limit, identifier)

    def reset(self, identifier: str) -> None:
        """Forget failed attempts after a successful login."""
        self.limiter.clear(self.limit, identifier)


class AuthService:
    """Checks credentials against the ``users`` collection."""

    def __init__(
        self,
        adapter: PersistenceAdapter,
        *,
        seed: SeedData | None = DEFAULT_SEED,
        rate_limiter: LoginRateLimiter | None = None,
    ):
        """Initialize with the adapter holding user accounts."""
        self.adapter = adapter
        self.seed = seed
        self.rate_limiter = rate_limiter or LoginRateLimiter()
        self.users: list[User] = []

    def initialize(self) -> None:
        """Seed demo accounts if the users key was never saved, then load them."""
        if not self.adapter.exists(USERS_KEY):
            users = self.seed.users if self.seed else []
            logger.info(f"Seeding '{USERS_KEY}' with {len(users)} accounts")
            self.adapter.save(USERS_KEY, [User.from_document(d).to_document() for d in users])
        self.users = [User.from_document(d) for d in self.adapter.load(USERS_KEY)]

    def login(self, email: str, password: str) -> User:
        """Authenticate a user.

        Args:
            email: Account email, compared case-insensitively
            password: Plain-text password

        Returns:
            The matching user

        Raises:
            RateLimitExceededError: If too many attempts failed recently
            AuthenticationError: If the credentials do not match an account
        """
        identifier = email.strip().lower()
        self.rate_limiter.check(identifier)

        user = next((u for u in self.users if u.email.lower() == identifier), None)
        if user is None or not verify_password(password, user.password_hash):
            self.rate_limiter.record_failure(identifier)
            logger.info(f"Failed login for {identifier}")
            raise AuthenticationError("Invalid email or password")

        self.rate_limiter.reset(identifier)
        logger.info(f"User {user.id} logged in as {user.role.value}")
        return user
