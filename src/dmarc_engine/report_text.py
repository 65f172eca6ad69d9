"""Rich terminal renderer for discovery results and decisions."""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich import box

from .models import Decision, Discovery, Disposition, Policy

DISPOSITION_STYLE = {
    Disposition.NONE:       "bold white on green",
    Disposition.QUARANTINE: "bold white on dark_orange",
    Disposition.REJECT:     "bold white on red",
}


class TextReporter:
    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    def render_org_domain(self, domain: str, org_domain: str) -> None:
        c = self._console
        c.print(f"[bold]Domain:[/bold] {domain}")
        c.print(f"[bold]Organizational domain:[/bold] {org_domain}")

    def render_discovery(self, domain: str, discovery: Discovery) -> None:
        c = self._console
        c.print()
        c.print(Panel(f"[bold]DMARC POLICY: {domain.upper()}[/bold]", style="bold blue", expand=False))
        if discovery.policy is None:
            if discovery.temporary_error:
                c.print("\n[yellow]DNS lookup failed temporarily — policy unknown.[/yellow]")
            else:
                c.print("\n[red]No DMARC policy published.[/red]")
            return
        if discovery.org_domain_used:
            c.print(f"\n[dim]Inherited from organizational domain {discovery.policy.domain}[/dim]")
        self._render_policy(discovery.policy)

    def render_decision(self, decision: Decision) -> None:
        c = self._console
        c.print()
        title = decision.from_host.upper() if decision.from_host else "UNKNOWN SENDER"
        c.print(Panel(f"[bold]DMARC DECISION: {title}[/bold]", style="bold blue", expand=False))

        aligned = "[green]Pass[/green]" if decision.aligned else "[red]Fail[/red]"
        c.print(f"\n[bold]Alignment:[/bold] {aligned}")
        c.print(f"[bold]Reason:[/bold] {decision.reason}")
        c.print(Text.assemble(
            ("Disposition: ", "bold"),
            (f" {decision.disposition.value.upper()} ", DISPOSITION_STYLE[decision.disposition]),
        ))
        if decision.sampled_out:
            c.print(f"[dim]Exempted by pct={decision.policy.pct} sampling[/dim]")
        if decision.policy is not None:
            self._render_policy(decision.policy)

    def _render_policy(self, policy: Policy) -> None:
        table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
        table.add_column("Tag")
        table.add_column("Value")
        table.add_row("zone", f"_dmarc.{policy.domain}")
        table.add_row("p", policy.p.value + (" (repaired)" if policy.repaired else ""))
        table.add_row("sp", policy.sp.value if policy.sp else "-")
        table.add_row("adkim", policy.adkim.value)
        table.add_row("aspf", policy.aspf.value)
        table.add_row("pct", str(policy.pct))
        table.add_row("rua", policy.rua or "-")
        table.add_row("ruf", policy.ruf or "-")
        self._console.print(table)
        if policy.raw_record:
            self._console.print(Text(policy.raw_record, no_wrap=True, style="dim"))
