from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from pulse.notifications.base import KIND_RECOVERED, AlertNotice


def build_alert_message(url: str, *, status_code: int | None) -> str:
    """Message stored on the alert row."""
    if status_code is not None:
        return f"Website {url} is down"
    return f"Website {url} is unreachable"


def _format_ms(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"{float(value):.0f}ms"


def build_alert_text(notice: AlertNotice) -> str:
    if notice.kind == KIND_RECOVERED:
        lines = [f"{notice.url} RECOVERED ✅", f"Project: {notice.project_name or 'Unknown Project'}"]
        if notice.status_code is not None:
            lines.append(f"HTTP: {notice.status_code} ({_format_ms(notice.response_time_ms)})")
        lines.append(f"At: {notice.triggered_at.isoformat()}")
        return "\n".join(lines).strip()

    lines = [f"{notice.url} is DOWN ❌", f"Project: {notice.project_name or 'Unknown Project'}", notice.message]
    if notice.status_code is not None:
        lines.append(f"HTTP: {notice.status_code} ({_format_ms(notice.response_time_ms)})")
    if notice.error_type:
        lines.append(f"Error kind: {notice.error_type}")
    if notice.error_message and notice.status_code is None:
        lines.append(f"Error: {notice.error_message.strip()[:500]}")
    lines.append(f"Alert triggered at {notice.triggered_at.strftime('%B %d, %Y %H:%M:%S %Z')}")
    return "\n".join(lines).strip()


def build_alert_subject(notice: AlertNotice) -> str:
    if notice.kind == KIND_RECOVERED:
        return f"✅ Recovered: {notice.url} is back up"
    return f"🚨 Alert: {notice.url} is down"


_jinja_env = Environment(
    loader=FileSystemLoader(str(Path(__file__).parent / "templates")),
    autoescape=True,
)


def build_alert_html(notice: AlertNotice) -> str:
    recovered = notice.kind == KIND_RECOVERED
    template = _jinja_env.get_template("alert_email.html")
    return template.render(
        notice=notice,
        recovered=recovered,
        color="#16a34a" if recovered else "#dc2626",
    )
