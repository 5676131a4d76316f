"""
Welcome banner and upgrade information.

The banner is printed only when an application entry point asks for it.
"""

from types import MappingProxyType
from typing import Optional

from rich.console import Console

VERSION = "1.0.0"
EDITION = "Community"

UPGRADE_INFO = MappingProxyType({
    "current_tier": "Community",
    "next_tier": "Developer",
    "pricing_url": "https://cosmara.dev/pricing",
    "contact_url": "https://cosmara.dev/contact",
    "benefits": MappingProxyType({
        "developer": (
            "50,000 requests/month (50x more than Community)",
            "ML-powered cost optimization and routing",
            "Advanced analytics and usage insights",
            "Intelligent fallbacks and error handling",
            "Commercial usage rights and licensing",
            "Priority email and chat support",
        ),
        "professional": (
            "500,000 requests/month (500x more than Community)",
            "All Developer tier features",
            "Dedicated account manager",
            "Custom integrations and partnerships",
            "SLA guarantees and uptime commitments",
            "Advanced security and compliance features",
        ),
    }),
})


def print_welcome_banner(console: Optional[Console] = None) -> None:
    """Print the Community SDK banner."""
    console = console or Console()
    console.print(f"\n[bold]🚀 COSMARA Community SDK[/bold] v{VERSION}")
    console.print("   Multi-provider AI client with 1,000 free requests/month")
    console.print("   Upgrade to Developer tier for 50x more requests and ML routing!")
    console.print(f"   Learn more: {UPGRADE_INFO['pricing_url']}\n")
