import logging
import re

from parkdesk.errors import EntryValidationError
from parkdesk.pricing import PricingCatalog
from parkdesk.schemas import VehicleEntryCreate, VehicleEntryResponse

PHONE_DIGITS = 10


def normalize_entry(entry: VehicleEntryCreate, catalog: PricingCatalog) -> VehicleEntryCreate:
    """Validate an entry form before anything is sent upstream."""
    phone = re.sub(r"\D", "", entry.driver_phone or "")
    if len(phone) != PHONE_DIGITS:
        raise EntryValidationError(f"Phone number must have {PHONE_DIGITS} digits")

    plate = (entry.vehicle_number or "").strip().upper()
    if not plate:
        raise EntryValidationError("Number plate is required")

    vehicle_type = (entry.vehicle_type or "").strip().lower()
    # raises RuleNotFound: no entry fee can be shown or charged without a rule
    catalog.lookup(vehicle_type)

    return VehicleEntryCreate(driver_phone=phone, vehicle_number=plate, vehicle_type=vehicle_type)


async def log_vehicle_entry(client, catalog: PricingCatalog, entry: VehicleEntryCreate) -> VehicleEntryResponse:
    entry = normalize_entry(entry, catalog)
    created = await client.log_vehicle_entry(entry.driver_phone, entry.vehicle_number, entry.vehicle_type)
    logging.info(f"Entry logged for {entry.vehicle_number} ({entry.vehicle_type}), session {created.session_id}")
    return created
