"""Prompt for the owner-facing narrative summary."""
from typing import Any, Dict, List

NARRATIVE_SYSTEM_PROMPT = (
    "You are a financial analyst writing for a small-business owner. "
    "Summarize the figures you are given in plain language, in at most five sentences. "
    "Use only the numbers provided; never invent figures."
)


def _figure(payload: Dict[str, Any], *path: str) -> Any:
    value: Any = payload
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def build_narrative_prompt(payload: Dict[str, Any]) -> str:
    """
    Render the JSON-mode analytics payload as a prompt.

    The key figures block is one "- label: value" line per available figure.
    """
    figures: List[str] = []
    for label, path in [
        ("Period start", ("period_start",)),
        ("Period end", ("period_end",)),
        ("Revenue", ("profit", "revenue")),
        ("Total costs", ("profit", "total_costs")),
        ("Net profit", ("profit", "net_profit")),
        ("Profit margin %", ("profit", "profit_margin")),
        ("Status", ("profit", "status")),
        ("Monthly break-even", ("break_even", "monthly_threshold")),
        ("Break-even for the period", ("period_break_even",)),
        ("Daily break-even", ("break_even", "daily_threshold")),
        ("Expected month revenue", ("forecast", "expected_total_revenue")),
    ]:
        value = _figure(payload, *path)
        if value is not None:
            figures.append(f"- {label}: {value}")

    warning = _figure(payload, "break_even", "warning_message")
    if warning:
        figures.append(f"- Warning: {warning}")

    alerts = payload.get("alerts") or []
    alert_lines = [f"- [{a.get('level')}] {a.get('message')}" for a in alerts]

    sections = ["Key figures:", *figures, ""]
    if alert_lines:
        sections += ["Alerts:", *alert_lines, ""]
    sections.append("Write the summary.")
    return "\n".join(sections)
