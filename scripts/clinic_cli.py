#!/usr/bin/env python3
"""Interactive terminal client for the clinic service."""

import sys

import httpx
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table


class ClinicCLI:
    """Terminal front end talking to the clinic HTTP API."""

    def __init__(self, base_url: str = "http://localhost:8000"):
        """Initialize clinic CLI."""
        self.base_url = base_url
        self.session_id: str | None = None
        self.role: str | None = None
        self.console = Console()
        self.client = httpx.Client(timeout=30.0)

    def start(self) -> None:
        """Log in and run the command loop."""
        self.console.print(
            Panel.fit(
                "[bold blue]🦷 DentalCare - Clinic Console[/bold blue]\n"
                "Commands: /dashboard, /patients [text], /incidents [text], /calendar YYYY-MM, /me, /help, /quit",
                border_style="blue",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]❌ Cannot connect to the service at {self.base_url}.[/red]")
            return

        try:
            if not self._login():
                return

            while True:
                user_input = Prompt.ask("\n[bold cyan]clinic[/bold cyan]").strip()
                command, _, argument = user_input.partition(" ")

                if command.lower() in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif command == "/help":
                    self._show_help()
                elif command == "/dashboard":
                    self._show_dashboard()
                elif command == "/patients":
                    self._show_patients(argument)
                elif command == "/incidents":
                    self._show_incidents(argument)
                elif command == "/calendar":
                    self._show_calendar(argument)
                elif command == "/me":
                    self._show_my_appointments()
                elif command:
                    self.console.print(f"[yellow]Unknown command: {command}[/yellow]")

        except KeyboardInterrupt:
            pass
        finally:
            if self.session_id:
                self._request("POST", "/auth/logout")
            self.console.print("\n[yellow]👋 Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        """Test connection to the service."""
        try:
            response = self.client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _login(self) -> bool:
        """Prompt for credentials until login succeeds or the user gives up."""
        for _ in range(3):
            email = Prompt.ask("Email")
            password = Prompt.ask("Password", password=True)
            response = self.client.post(f"{self.base_url}/auth/login", json={"email": email, "password": password})
            if response.status_code == 200:
                data = response.json()
                self.session_id = data["session_id"]
                self.role = data["user"]["role"]
                self.console.print(f"[green]✅ Signed in as {data['user']['name']} ({self.role})[/green]")
                return True
            self.console.print(f"[red]{response.json().get('detail', 'Login failed')}[/red]")
        return False

    def _request(self, method: str, path: str, **kwargs) -> dict | list | None:
        """Send an authenticated request and return the JSON body, or None on error."""
        try:
            response = self.client.request(
                method, f"{self.base_url}{path}", headers={"X-Session-Id": self.session_id or ""}, **kwargs
            )
        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Request failed: {e}[/red]")
            return None

        if response.status_code >= 400:
            self.console.print(f"[red]❌ {response.status_code}: {response.json().get('detail')}[/red]")
            return None
        return response.json()

    def _show_dashboard(self) -> None:
        data = self._request("GET", "/dashboard")
        if not data:
            return
        if data["role"] != "Admin":
            self._render_patient_view(data)
            return

        self.console.print(
            Panel.fit(
                f"Patients: [bold]{data['totalPatients']}[/bold]   "
                f"Appointments: [bold]{data['totalIncidents']}[/bold]   "
                f"Completed: [bold]{data['completedTreatments']}[/bold]   "
                f"Pending: [bold]{data['pendingTreatments']}[/bold]   "
                f"Revenue: [bold]${data['totalRevenue']:,.2f}[/bold]",
                title="Dashboard",
            )
        )
        self._render_incidents("Upcoming appointments", data["upcomingAppointments"])

        table = Table(title="Top patients")
        table.add_column("Patient")
        table.add_column("Appointments", justify="right")
        for patient in data["topPatients"]:
            table.add_row(patient["name"], str(patient["appointmentCount"]))
        self.console.print(table)

    def _show_patients(self, text: str) -> None:
        patients = self._request("GET", "/patients", params={"q": text})
        if patients is None:
            return
        table = Table(title="Patients")
        for column in ["ID", "Name", "Date of birth", "Contact", "Email", "Appointments"]:
            table.add_column(column)
        for patient in patients:
            table.add_row(
                patient["id"],
                patient.get("name", ""),
                patient.get("dob", ""),
                patient.get("contact", ""),
                patient.get("email", ""),
                str(patient["appointmentCount"]),
            )
        self.console.print(table)

    def _show_incidents(self, text: str) -> None:
        incidents = self._request("GET", "/incidents", params={"q": text})
        if incidents is not None:
            self._render_incidents("Appointments", incidents)

    def _show_calendar(self, argument: str) -> None:
        year, _, month = argument.partition("-")
        if not (year.isdigit() and month.isdigit()):
            self.console.print("[yellow]Usage: /calendar YYYY-MM[/yellow]")
            return
        data = self._request("GET", f"/calendar/{int(year)}/{int(month)}")
        if not data:
            return

        table = Table(title=f"{data['month_name']} {data['year']}", show_lines=True)
        for name in ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]:
            table.add_column(name, width=14)

        cells = []
        for cell in data["days"]:
            if cell["day"] is None:
                cells.append("")
                continue
            day_number = str(int(cell["day"][-2:]))
            label = f"[bold reverse]{day_number}[/bold reverse]" if cell["is_today"] else day_number
            titles = [view["incident"].get("title", "") for view in cell["appointments"][:3]]
            if len(cell["appointments"]) > 3:
                titles.append(f"+{len(cell['appointments']) - 3} more")
            cells.append("\n".join([label, *titles]))

        for start in range(0, len(cells), 7):
            week = cells[start : start + 7]
            table.add_row(*week, *[""] * (7 - len(week)))
        self.console.print(table)

    def _show_my_appointments(self) -> None:
        data = self._request("GET", "/me/appointments")
        if data:
            self._render_patient_view(data)

    def _render_patient_view(self, data: dict) -> None:
        patient = data.get("patient") or {}
        self.console.print(
            Panel.fit(
                f"[bold]{patient.get('name', 'Unknown Patient')}[/bold]\n"
                f"Appointments: {data['totalAppointments']}   Completed: {data['completedTreatments']}",
                title="My record",
            )
        )
        self._render_incidents("Upcoming appointments", data["upcomingAppointments"])
        self._render_incidents("Appointment history", data["pastAppointments"])

    def _render_incidents(self, title: str, views: list[dict]) -> None:
        table = Table(title=title)
        for column in ["ID", "Patient", "Title", "Date", "Status", "Cost"]:
            table.add_column(column)
        for view in views:
            incident = view["incident"]
            table.add_row(
                incident["id"],
                view["patient_name"],
                incident.get("title", ""),
                incident.get("appointmentDate", ""),
                incident.get("status", ""),
                view["cost_display"],
            )
        self.console.print(table)

    def _show_help(self) -> None:
        """Show available commands."""
        self.console.print(
            Panel(
                "/dashboard            KPIs (admin) or your own summary (patient)\n"
                "/patients [text]      Search patients by name, email or contact\n"
                "/incidents [text]     Search appointments by title, description or patient\n"
                "/calendar YYYY-MM     Month view of appointments\n"
                "/me                   Your upcoming and past appointments\n"
                "/quit                 Sign out and exit",
                title="Help",
                border_style="green",
            )
        )


def main() -> None:
    """Run the CLI against the URL given on the command line."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"
    ClinicCLI(base_url).start()


if __name__ == "__main__":
    main()
