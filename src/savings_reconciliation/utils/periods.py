from datetime import date

MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]


def month_name(month: int) -> str:
    if 1 <= month <= 12:
        return MONTH_NAMES[month - 1]
    return "Unknown"


def period_label(month: int, year: int) -> str:
    return f"{month_name(month)} {year}"


def first_day_of_period(month: int, year: int) -> date:
    return date(year, month, 1)


def controller_reference_id(month: int, year: int, employee_id: str) -> str:
    """Deterministic ledger reference for one teacher's deduction in a period."""
    return f"CTRL_{year}_{month:02d}_{employee_id}"
