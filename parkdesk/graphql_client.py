import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from parkdesk import config
from parkdesk.errors import RemoteOperationError
from parkdesk.schemas import (
    DashboardStats,
    OverstayCharge,
    PricingRule,
    ProcessedExit,
    VehicleEntryResponse,
    VehicleSession,
)

SESSION_FIELDS = """
      id
      session_id
      driver_phone
      vehicle_type
      vehicle_number
      entry_time
      status
      base_fee_paid
      duration_minutes
      is_overstay
      overstay_minutes
      declared_duration_hours
"""

GET_MONITOR_DATA = """
  query GetMonitorData {
    activeVehicles {%s}
    pricingRules {
      id
      vehicle_type
      base_fee
      base_hours
      extra_hour_rate
    }
  }
""" % SESSION_FIELDS

GET_STATS_DATA = """
  query GetStatsData {
    dashboardStats {
      active_vehicles
      completed_today
      base_fees_collected
      overstay_fees_collected
      total_revenue_today
    }
    activeVehicles {%s}
  }
""" % SESSION_FIELDS

LOG_ENTRY = """
  mutation LogEntry($input: VehicleEntryInput!) {
    logVehicleEntry(input: $input) {
      id
      session_id
      base_fee_paid
      vehicle_number
    }
  }
"""

PROCESS_EXIT = """
  mutation ProcessExit($sessionId: String!) {
    processVehicleExit(session_id: $sessionId) {
      session_id
      total_amount
      overstay_fee
      overstay_record {
        id
        fee_amount
      }
    }
  }
"""

COLLECT_PAYMENT = """
  mutation CollectPayment($chargeId: ID!) {
    collectOverstayPayment(overstay_charge_id: $chargeId) {
      id
      is_collected
    }
  }
"""

TRANSACTION_HISTORY = """
  query TransactionHistory(
    $page: Int, $pageSize: Int, $status: String, $vehicleType: String,
    $startDate: String, $endDate: String, $search: String
  ) {
    transactionHistory(
      page: $page, page_size: $pageSize, status: $status, vehicle_type: $vehicleType,
      start_date: $startDate, end_date: $endDate, search: $search
    ) {
      total
      page
      page_size
      items {
        session_id
        driver_phone
        vehicle_number
        vehicle_type
        entry_time
        exit_time
        status
        base_fee_paid
        overstay_fee
        total_amount
      }
    }
  }
"""


def _parse(operation: str, model, row):
    try:
        return model.model_validate(row)
    except ValidationError as e:
        raise RemoteOperationError(operation, f"malformed response: {e}") from e


def _rows(operation: str, data: Dict[str, Any], key: str) -> list:
    rows = data.get(key) or []
    if not isinstance(rows, list):
        raise RemoteOperationError(operation, f"'{key}' was not a list")
    return rows


class GraphQLClient:
    """Async client for the parking data store's GraphQL endpoint."""

    def __init__(
        self,
        url: str = config.GRAPHQL_URL,
        token: Optional[str] = config.GRAPHQL_API_TOKEN,
        timeout: float = config.REQUEST_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.url = url
        self._http = httpx.AsyncClient(headers=headers, timeout=timeout, transport=transport)

    async def aclose(self):
        await self._http.aclose()

    async def execute(self, operation: str, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self._http.post(self.url, json={"query": query, "variables": variables or {}})
        except httpx.HTTPError as e:
            logging.error(f"{operation}: request to {self.url} failed: {e}")
            raise RemoteOperationError(operation, str(e)) from e

        if response.status_code != 200:
            logging.error(f"{operation}: HTTP {response.status_code} from {self.url}")
            raise RemoteOperationError(operation, f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteOperationError(operation, "response was not JSON") from e

        if not isinstance(payload, dict):
            raise RemoteOperationError(operation, "response was not a JSON object")

        errors = payload.get("errors")
        if errors:
            if not isinstance(errors, list):
                errors = [errors]
            message = "; ".join(
                str(err.get("message", "unknown error")) if isinstance(err, dict) else str(err) for err in errors
            )
            logging.error(f"{operation}: {message}")
            raise RemoteOperationError(operation, message)

        data = payload.get("data")
        if data is None:
            raise RemoteOperationError(operation, "response carried no data")
        if not isinstance(data, dict):
            raise RemoteOperationError(operation, "response data was not an object")
        return data

    async def monitor_data(self) -> Tuple[List[VehicleSession], List[PricingRule]]:
        data = await self.execute("GetMonitorData", GET_MONITOR_DATA)
        sessions = [_parse("GetMonitorData", VehicleSession, row) for row in _rows("GetMonitorData", data, "activeVehicles")]
        rules = [_parse("GetMonitorData", PricingRule, row) for row in _rows("GetMonitorData", data, "pricingRules")]
        return sessions, rules

    async def stats_data(self) -> Tuple[DashboardStats, List[VehicleSession]]:
        data = await self.execute("GetStatsData", GET_STATS_DATA)
        stats = _parse("GetStatsData", DashboardStats, data.get("dashboardStats") or {})
        sessions = [_parse("GetStatsData", VehicleSession, row) for row in _rows("GetStatsData", data, "activeVehicles")]
        return stats, sessions

    async def log_vehicle_entry(self, driver_phone: str, vehicle_number: str, vehicle_type: str) -> VehicleEntryResponse:
        data = await self.execute(
            "LogEntry",
            LOG_ENTRY,
            {
                "input": {
                    "driver_phone": driver_phone,
                    "vehicle_number": vehicle_number,
                    "vehicle_type": vehicle_type,
                }
            },
        )
        return _parse("LogEntry", VehicleEntryResponse, data.get("logVehicleEntry"))

    async def process_vehicle_exit(self, session_id: str) -> ProcessedExit:
        data = await self.execute("ProcessExit", PROCESS_EXIT, {"sessionId": session_id})
        return _parse("ProcessExit", ProcessedExit, data.get("processVehicleExit"))

    async def collect_overstay_payment(self, charge_id: str) -> OverstayCharge:
        data = await self.execute("CollectPayment", COLLECT_PAYMENT, {"chargeId": charge_id})
        return _parse("CollectPayment", OverstayCharge, data.get("collectOverstayPayment"))

    async def transaction_history(
        self,
        page: int = 1,
        page_size: int = 20,
        status: Optional[str] = None,
        vehicle_type: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        variables = {
            "page": page,
            "pageSize": page_size,
            "status": status,
            "vehicleType": vehicle_type,
            "startDate": start_date.isoformat() if start_date else None,
            "endDate": end_date.isoformat() if end_date else None,
            "search": search,
        }
        data = await self.execute("TransactionHistory", TRANSACTION_HISTORY, variables)
        return data.get("transactionHistory") or {}
