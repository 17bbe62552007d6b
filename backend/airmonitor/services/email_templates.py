"""
Email Templates - Air Quality Alert and Report Emails

Generates HTML email content for prolonged critical alerts and the
monthly summary report.
"""

from html import escape

from .timestamp import to_campus_time


# Severity → color mapping for email badges
SEVERITY_COLORS = {
    "critical": {"bg": "#dc2626", "text": "#ffffff"},  # Red
    "high": {"bg": "#ea580c", "text": "#ffffff"},      # Orange
    "medium": {"bg": "#ca8a04", "text": "#ffffff"},    # Amber
    "low": {"bg": "#2563eb", "text": "#ffffff"},       # Blue
}

SENSOR_LABELS = {
    "pm25": "PM2.5",
    "pm10": "PM10",
    "pm1": "PM1",
    "co2": "CO2",
    "voc": "VOC",
    "nox": "NOx",
    "hcho": "HCHO",
    "temperature": "Temperature",
    "humidity": "Humidity",
}


def sensor_label(sensor_type: str) -> str:
    return SENSOR_LABELS.get(sensor_type, sensor_type.replace("_", " ").title())


def format_prolonged_alert_email(
    prolonged: list[dict],
    threshold_hours: float,
    timezone: str = "UTC",
) -> tuple[str, str]:
    """
    Generate email subject and HTML body for prolonged critical alerts.

    Args:
        prolonged: Entries with device_name, location, sensor_type,
            max_value, unit, first_seen, last_seen, duration_hours
        threshold_hours: Configured duration that makes an alert prolonged
        timezone: Campus timezone (IANA format) for display

    Returns:
        Tuple of (subject, html_body)
    """
    colors = SEVERITY_COLORS["critical"]
    subject = f"[CRITICAL] Prolonged Air Quality Alert - {len(prolonged)} sensor(s)"

    rows = "".join(
        _alert_row(entry, timezone, "#f9fafb" if i % 2 == 0 else "#ffffff")
        for i, entry in enumerate(prolonged)
    )

    body = f"""
          <tr>
            <td style="padding:20px 24px 12px;">
              <p style="margin:0;color:#374151;font-size:15px;line-height:1.5;">
                The following sensors have reported hazardous levels for at least
                {threshold_hours:g} hour(s). Immediate attention required.
              </p>
            </td>
          </tr>
          <tr>
            <td style="padding:8px 24px 20px;">
              <table width="100%" cellpadding="0" cellspacing="0" style="border:1px solid #e5e7eb;border-radius:6px;overflow:hidden;">
                <tr>
                  <th style="padding:10px 14px;text-align:left;color:#6b7280;font-size:12px;">Device</th>
                  <th style="padding:10px 14px;text-align:left;color:#6b7280;font-size:12px;">Sensor</th>
                  <th style="padding:10px 14px;text-align:left;color:#6b7280;font-size:12px;">Peak</th>
                  <th style="padding:10px 14px;text-align:left;color:#6b7280;font-size:12px;">Since</th>
                </tr>
                {rows}
              </table>
            </td>
          </tr>"""

    html = _wrap(
        header_bg=colors["bg"],
        kicker="Prolonged Alert",
        title="Critical Air Quality",
        badge="critical",
        body=body,
    )
    return subject, html


def format_report_email(report: dict) -> tuple[str, str]:
    """
    Generate email subject and HTML body for a summary report.

    Args:
        report: Output of build_summary_report

    Returns:
        Tuple of (subject, html_body)
    """
    period = report.get("period", {})
    label = period.get("label") or f"{period.get('start', '')} to {period.get('end', '')}"
    subject = f"Air Quality Report - {label}"

    avg_aqi = report.get("average_aqi")
    peak = report.get("peak_event") or {}
    peak_text = (
        f"{sensor_label(peak['sensor_type'])} {peak['value']} {peak.get('unit') or ''} on {peak.get('device_name') or peak.get('device_id')}"
        if peak else "None"
    )

    details = "".join([
        _detail_row("Period", escape(label), "#f9fafb"),
        _detail_row("Readings", str(report.get("total_readings", 0))),
        _detail_row("Average AQI", f"{avg_aqi} ({report.get('aqi_category')})" if avg_aqi is not None else "n/a", "#f9fafb"),
        _detail_row("Alerts", str(report.get("alert_count", 0))),
        _detail_row("Peak", escape(peak_text), "#f9fafb"),
    ])

    sensor_rows = "".join(
        _detail_row(
            sensor_label(sensor_type),
            f"avg {stats['average']} / min {stats['min']} / max {stats['max']}",
            "#f9fafb" if i % 2 == 0 else "#ffffff",
        )
        for i, (sensor_type, stats) in enumerate(sorted(report.get("sensors", {}).items()))
    )

    body = f"""
          <tr>
            <td style="padding:20px 24px 12px;">
              <p style="margin:0;color:#374151;font-size:15px;line-height:1.5;">{escape(report.get("summary", ""))}</p>
            </td>
          </tr>
          <tr>
            <td style="padding:8px 24px 12px;">
              <table width="100%" cellpadding="0" cellspacing="0" style="border:1px solid #e5e7eb;border-radius:6px;overflow:hidden;">
                {details}
              </table>
            </td>
          </tr>
          <tr>
            <td style="padding:8px 24px 20px;">
              <table width="100%" cellpadding="0" cellspacing="0" style="border:1px solid #e5e7eb;border-radius:6px;overflow:hidden;">
                {sensor_rows}
              </table>
            </td>
          </tr>"""

    html = _wrap(
        header_bg="#111827",
        kicker="Monthly Report",
        title=escape(label),
        badge="report",
        body=body,
    )
    return subject, html


def _wrap(header_bg: str, kicker: str, title: str, badge: str, body: str) -> str:
    """Shared header/footer layout."""
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="margin:0;padding:0;background-color:#f3f4f6;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;">
  <table width="100%" cellpadding="0" cellspacing="0" style="background-color:#f3f4f6;padding:24px 0;">
    <tr>
      <td align="center">
        <table width="600" cellpadding="0" cellspacing="0" style="background-color:#ffffff;border-radius:8px;overflow:hidden;">
          <tr>
            <td style="background-color:{header_bg};padding:20px 24px;">
              <span style="color:#ffffff;font-size:12px;text-transform:uppercase;letter-spacing:1px;">{kicker}</span>
              <br>
              <span style="color:#ffffff;font-size:22px;font-weight:700;">{title}</span>
              <span style="float:right;background-color:rgba(255,255,255,0.2);color:#ffffff;padding:4px 12px;border-radius:12px;font-size:12px;text-transform:uppercase;">{badge}</span>
            </td>
          </tr>
          {body}
          <tr>
            <td style="background-color:#f9fafb;padding:16px 24px;border-top:1px solid #e5e7eb;">
              <p style="margin:0;color:#9ca3af;font-size:12px;text-align:center;">Campus Air Quality Monitor</p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>"""


def _alert_row(entry: dict, timezone: str, bg_color: str) -> str:
    device = escape(str(entry.get("device_name") or entry.get("device_id")))
    if entry.get("location"):
        device += f"<br><span style=\"color:#6b7280;font-size:12px;\">{escape(entry['location'])}</span>"
    peak = f"{entry.get('max_value')} {entry.get('unit') or ''}".strip()
    since = _format_timestamp(entry.get("first_seen"), timezone)
    cell = f"padding:10px 14px;background-color:{bg_color};border-top:1px solid #e5e7eb;color:#111827;font-size:13px;"
    return f"""<tr>
    <td style="{cell}">{device}</td>
    <td style="{cell}">{sensor_label(entry.get("sensor_type", ""))}</td>
    <td style="{cell}">{escape(peak)}</td>
    <td style="{cell}">{since} ({entry.get("duration_hours", 0):.1f}h)</td>
</tr>"""


def _detail_row(label: str, value: str, bg_color: str = "#ffffff") -> str:
    """Generate a single row for the details table."""
    return f"""<tr>
    <td style="padding:10px 14px;background-color:{bg_color};border-bottom:1px solid #e5e7eb;color:#6b7280;font-size:13px;width:120px;">{label}</td>
    <td style="padding:10px 14px;background-color:{bg_color};border-bottom:1px solid #e5e7eb;color:#111827;font-size:13px;font-weight:500;">{value}</td>
</tr>"""


def _format_timestamp(ts, timezone: str = "UTC") -> str:
    """Format a timestamp in campus time, or return it raw if it cannot be parsed."""
    if not ts:
        return "-"

    try:
        return to_campus_time(ts, timezone).strftime("%b %d, %Y at %I:%M %p")
    except (ValueError, KeyError):
        return str(ts)[:19]
