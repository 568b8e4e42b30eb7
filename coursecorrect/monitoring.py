"""Cloud Monitoring request-count metrics for the generative API project."""

import json
import logging
import threading
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account
from starlette.concurrency import run_in_threadpool

from .errors import UpstreamError, upstream_json


logger = logging.getLogger(__name__)

MONITORING_SCOPE = "https://www.googleapis.com/auth/monitoring.read"
MONITORING_BASE = "https://monitoring.googleapis.com/v3"
REQUEST_COUNT_METRIC = "serviceruntime.googleapis.com/api/request_count"

DEFAULT_DAYS_BACK = 30
MAX_DAYS_BACK = 90


def clamp_days_back(value: Any) -> float:
    """Only a non-zero JSON number picks the window; fractions of a day are kept."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value:
        return DEFAULT_DAYS_BACK
    return max(1, min(MAX_DAYS_BACK, value))


class ServiceAccountTokens:
    """Exchanges the service-account key for a monitoring-read access token.

    One instance lives on ``app.state`` for the process; the signed credentials
    are kept and only refreshed once Google reports them expired.
    """

    def __init__(self, key_json: str):
        try:
            self.info = json.loads(key_json)
        except ValueError:
            raise UpstreamError("GOOGLE_SERVICE_ACCOUNT_KEY is not valid JSON")
        if not isinstance(self.info, dict):
            raise UpstreamError("GOOGLE_SERVICE_ACCOUNT_KEY must be a JSON object")
        self.project_id = self.info.get("project_id", "")
        self._credentials: Optional[service_account.Credentials] = None
        self._lock = threading.Lock()

    def _refresh(self) -> str:
        with self._lock:
            if self._credentials is None:
                self._credentials = service_account.Credentials.from_service_account_info(
                    self.info, scopes=[MONITORING_SCOPE]
                )
            if not self._credentials.valid:
                self._credentials.refresh(GoogleAuthRequest())
            return self._credentials.token

    async def access_token(self) -> str:
        try:
            return await run_in_threadpool(self._refresh)
        except (GoogleAuthError, ValueError) as e:
            logger.error("Service account token exchange failed: %s", e)
            raise UpstreamError("Token exchange failed")


async def fetch_request_counts(
    http: httpx.AsyncClient, token: str, project_id: str, start: datetime, end: datetime
) -> List[Dict[str, Any]]:
    params = {
        "filter": f'metric.type="{REQUEST_COUNT_METRIC}"',
        "interval.startTime": _rfc3339(start),
        "interval.endTime": _rfc3339(end),
        "aggregation.alignmentPeriod": "86400s",
        "aggregation.perSeriesAligner": "ALIGN_SUM",
    }
    url = f"{MONITORING_BASE}/projects/{project_id}/timeSeries"
    series: List[Dict[str, Any]] = []
    page_token: Optional[str] = None
    while True:
        query = dict(params, pageToken=page_token) if page_token else params
        try:
            resp = await http.get(url, params=query, headers={"Authorization": f"Bearer {token}"})
        except httpx.HTTPError as e:
            raise UpstreamError(f"Monitoring API request failed: {e}")
        if resp.status_code // 100 != 2:
            logger.error("Monitoring API error %s: %s", resp.status_code, resp.text[:2000])
            raise UpstreamError(f"Monitoring API error: {resp.status_code}", status_code=resp.status_code)
        data = upstream_json(resp, "Monitoring API")
        series.extend(data.get("timeSeries") or [])
        page_token = data.get("nextPageToken")
        if not page_token:
            return series


def _rfc3339(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _point_value(point: Dict[str, Any]) -> int:
    value = point.get("value") or {}
    raw = value.get("int64Value", value.get("doubleValue", 0))
    try:
        return int(float(raw))
    except (TypeError, ValueError):
        return 0


def aggregate(series: List[Dict[str, Any]]) -> Dict[str, Any]:
    total = 0
    errors = 0
    by_method: Dict[str, int] = defaultdict(int)
    by_code: Dict[str, int] = defaultdict(int)
    daily: Dict[str, int] = defaultdict(int)

    for ts in series:
        method = ((ts.get("resource") or {}).get("labels") or {}).get("method", "unknown")
        method = method.rsplit(".", 1)[-1] or "unknown"
        code = str(((ts.get("metric") or {}).get("labels") or {}).get("response_code", "unknown"))
        for point in ts.get("points") or []:
            count = _point_value(point)
            total += count
            if not code.startswith("2"):
                errors += count
            by_method[method] += count
            by_code[code] += count
            day = ((point.get("interval") or {}).get("endTime") or "")[:10]
            if day:
                daily[day] += count

    success_rate = "100.0" if total == 0 else f"{(total - errors) / total * 100:.1f}"
    return {
        "totalRequests": total,
        "errorCount": errors,
        "successRate": success_rate,
        "byMethod": [
            {"method": m, "count": c} for m, c in sorted(by_method.items(), key=lambda kv: kv[1], reverse=True)
        ],
        "byResponseCode": [
            {"code": code, "count": c} for code, c in sorted(by_code.items(), key=lambda kv: kv[1], reverse=True)
        ],
        "dailyUsage": [{"date": d, "count": c} for d, c in sorted(daily.items())],
    }


async def collect_metrics(
    http: httpx.AsyncClient, tokens: ServiceAccountTokens, days_back: float, now: Optional[datetime] = None
) -> Dict[str, Any]:
    end = now or datetime.now(timezone.utc)
    start = end - timedelta(days=days_back)
    token = await tokens.access_token()
    series = await fetch_request_counts(http, token, tokens.project_id, start, end)
    result = {
        "source": "google_cloud_monitoring",
        "projectId": tokens.project_id,
        "timeRange": {"start": _rfc3339(start), "end": _rfc3339(end), "daysBack": days_back},
    }
    result.update(aggregate(series))
    return result
