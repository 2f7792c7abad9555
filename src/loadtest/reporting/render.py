from __future__ import annotations

import io
import json

import pandas as pd

from loadtest.config import LoadTestConfig, OutputFormat
from loadtest.metrics import Report

_RULE = "-" * 40
_MESSAGE_WIDTH = 50

_STATUS_DESCRIPTIONS = {
    200: "OK",
    201: "Created",
    204: "No Content",
    310: "Too Many Redirects",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    408: "Request Timeout",
    429: "Too Many Requests",
    495: "SSL Certificate Error",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}


def describe_status(code: int) -> str:
    return _STATUS_DESCRIPTIONS.get(code, f"Status Code {code}")


def render(report: Report, output_format: OutputFormat, config: LoadTestConfig | None = None) -> str:
    if output_format is OutputFormat.JSON:
        return render_json(report, config)
    if output_format is OutputFormat.CSV:
        return render_csv(report)
    return render_plain(report)


def render_json(report: Report, config: LoadTestConfig | None = None) -> str:
    data = report.to_dict()
    if config is not None:
        data["config"] = dict(config.to_metadata())
    return json.dumps(data, indent=1)


def render_csv(report: Report) -> str:
    """Summary row followed by status, error and latency sections.

    Floats are written with full precision so the CSV can be read back
    without loss.
    """
    summary = pd.DataFrame(
        [
            {
                "total_time_sec": report.total_time_sec,
                "total_requests": report.total_requests,
                "rps": report.rps,
                "min_ms": report.min_ms,
                "max_ms": report.max_ms,
                "avg_ms": report.avg_ms,
                "std_dev_ms": report.std_dev_ms,
                **{f"p{p:g}_ms": value for p, value in report.percentiles().items()},
                "successes": report.success_count(),
                "errors": report.errors,
                "reached_network": report.reached_network,
            }
        ]
    )
    total = max(1, report.total_requests)
    statuses = pd.DataFrame(
        [
            {
                "code": code,
                "count": count,
                "synthetic": report.synthetic_codes.get(code, 0),
                "percentage": count / total * 100.0,
            }
            for code, count in sorted(report.status_codes.items())
        ],
        columns=["code", "count", "synthetic", "percentage"],
    )
    errors = pd.DataFrame(
        [
            {"code": d.code, "message": d.message, "count": d.count}
            for d in sorted(report.error_details.values(), key=lambda d: d.count, reverse=True)
        ],
        columns=["code", "message", "count"],
    )
    latencies = pd.DataFrame({"latency_ms": list(report.latencies_ms)})

    out = io.StringIO()
    summary.to_csv(out, index=False)
    out.write("\nStatus Code Distribution\n")
    statuses.to_csv(out, index=False)
    out.write("\nError Details\n")
    errors.to_csv(out, index=False)
    out.write("\nLatencies\n")
    latencies.to_csv(out, index=False)
    return out.getvalue()


def render_plain(report: Report) -> str:
    lines: list[str] = []
    lines.append("Test Results Summary")
    lines.append(_RULE)
    lines.append(f"Total Time: {report.total_time_sec:.2f} seconds")
    lines.append(f"Total Requests: {report.total_requests}")
    lines.append(f"Requests per Second: {report.rps:.2f}")
    lines.append(f"Reached Network: {report.reached_network}")
    lines.append(_RULE)
    lines.append("")

    lines.append("Response Time Stats")
    lines.append(_RULE)
    if report.latencies_ms:
        lines.append(f"Minimum: {_ms(report.min_ms)}")
        lines.append(f"Maximum: {_ms(report.max_ms)}")
        lines.append(f"Average: {_ms(report.avg_ms)}")
        lines.append(f"Std Deviation: {_ms(report.std_dev_ms)}")
        for p, value in report.percentiles().items():
            lines.append(f"P{p:g}: {_ms(value)}")
    else:
        lines.append("No request reached the server, no response times to report")
    lines.append(_RULE)
    lines.append("")

    lines.append("Status Code Distribution")
    lines.append(_RULE)
    total = max(1, report.total_requests)
    successes = report.success_count()
    lines.append(f"Successful: {successes} ({successes / total * 100:.1f}%)")
    for code, count in sorted(report.status_codes.items()):
        synthetic = report.synthetic_codes.get(code, 0)
        suffix = f", {synthetic} from transport errors" if synthetic else ""
        lines.append(
            f"[{_status_marker(code)}] Status {code} ({describe_status(code)}): "
            f"{count} requests ({count / total * 100:.1f}%){suffix}"
        )
    lines.append(_RULE)

    if report.errors:
        lines.append("")
        lines.append(f"Total Errors: {report.errors} ({report.errors / total * 100:.1f}%)")
        lines.append("")
        lines.append("Error Details")
        lines.append(_RULE)
        lines.append(f"| {'Status':<8} | {'Error Message':<{_MESSAGE_WIDTH}} | {'Count':<8} | {'Percent':<10} |")
        lines.append(_RULE)
        for detail in sorted(report.error_details.values(), key=lambda d: d.count, reverse=True):
            message = detail.message
            if len(message) > _MESSAGE_WIDTH:
                message = message[: _MESSAGE_WIDTH - 3] + "..."
            percent = detail.count / total * 100
            lines.append(f"| {detail.code:<8} | {message:<{_MESSAGE_WIDTH}} | {detail.count:<8} | {percent:<9.1f}% |")
        lines.append(_RULE)
    return "\n".join(lines) + "\n"


def _ms(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"{value:.2f}ms"


def _status_marker(code: int) -> str:
    if code >= 400:
        return "ERR"
    if code >= 300:
        return "RDR"
    return "OK"
