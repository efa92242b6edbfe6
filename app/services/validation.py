from app.errors import ReportValidationError

TRUTHY = {"1", "true", "yes", "y", "on"}


def validate_report(category: str, note: str, area_label: str, lat: float, lng: float) -> None:
    """Checks shared by both submission formats; the first failing rule is reported."""
    if not category:
        raise ReportValidationError("missing category")
    if not (note or "").strip():
        raise ReportValidationError("missing note")
    if not (area_label or "").strip():
        raise ReportValidationError("missing area_label")
    # 0,0 is what an unset GPS fix looks like; ranges are not checked
    if lat == 0 and lng == 0:
        raise ReportValidationError("invalid coordinates")


def parse_bool(value) -> bool:
    return str(value or "").strip().lower() in TRUTHY
