"""Ages, zodiac signs and upcoming birthdays / death anniversaries."""

from datetime import date
from typing import Any

from models import Person, normalize_date, parse_date
from tree_utils import flatten_tree


ZODIAC_ANIMALS = ["猴", "鸡", "狗", "猪", "鼠", "牛", "虎", "兔", "龙", "蛇", "马", "羊"]
HEAVENLY_STEMS = ["甲", "乙", "丙", "丁", "戊", "己", "庚", "辛", "壬", "癸"]
EARTHLY_BRANCHES = ["子", "丑", "寅", "卯", "辰", "巳", "午", "未", "申", "酉", "戌", "亥"]

SPOUSE_SUFFIX = " (配偶)"


def calculate_age(birth_date: str | None, death_date: str | None = None, today: date | None = None) -> int:
    """Age in whole years at death, or today for the living. 0 if unknown."""
    birth = parse_date(birth_date)
    if birth is None:
        return 0
    end = parse_date(death_date) or today or date.today()

    age = end.year - birth.year
    if (end.month, end.day) < (birth.month, birth.day):
        age -= 1
    return age


def chinese_zodiac(birth_date: str | None) -> str:
    """Zodiac animal for the birth year (Gregorian year boundary)."""
    birth = parse_date(birth_date)
    if birth is None:
        return ""
    return ZODIAC_ANIMALS[birth.year % 12]


def year_pillar(birth_date: str | None) -> str:
    """Sexagenary year name, e.g. 1984 -> 甲子."""
    birth = parse_date(birth_date)
    if birth is None:
        return ""
    return HEAVENLY_STEMS[(birth.year - 4) % 10] + EARTHLY_BRANCHES[(birth.year - 4) % 12]


def _next_occurrence(event: date, today: date) -> date:
    """The next anniversary of event on or after today (Feb 29 falls back to Feb 28)."""
    for year in (today.year, today.year + 1):
        try:
            candidate = event.replace(year=year)
        except ValueError:
            candidate = date(year, 2, 28)
        if candidate >= today:
            return candidate
    return candidate


def _birthday_entry(name: str, birth_date: str | None, death_date: str | None, today: date, window_days: int) -> dict[str, Any] | None:
    # Only the living have birthdays to remind of
    if death_date:
        return None
    birth = parse_date(birth_date)
    if birth is None:
        return None

    upcoming = _next_occurrence(birth, today)
    days_until = (upcoming - today).days
    if days_until > window_days:
        return None
    return {
        "name": name,
        "date": normalize_date(birth_date),
        "nextDate": upcoming.isoformat(),
        "turningAge": upcoming.year - birth.year,
        "daysUntil": days_until,
    }


def upcoming_birthdays(root: Person, today: date | None = None, window_days: int = 7) -> list[dict[str, Any]]:
    """Birthdays of living members and spouses within the next window_days, soonest first."""
    today = today or date.today()
    results = []

    for member in flatten_tree(root):
        entry = _birthday_entry(member.name, member.birth_date, member.death_date, today, window_days)
        if entry:
            results.append(entry)
        if member.spouse:
            entry = _birthday_entry(
                member.spouse + SPOUSE_SUFFIX, member.spouse_birth_date, member.spouse_death_date, today, window_days
            )
            if entry:
                results.append(entry)

    return sorted(results, key=lambda r: r["daysUntil"])


def upcoming_death_anniversaries(root: Person, today: date | None = None, window_days: int = 30) -> list[dict[str, Any]]:
    """Death anniversaries of members and spouses within the next window_days, soonest first."""
    today = today or date.today()
    results = []

    def check(name: str, death_date: str | None):
        death = parse_date(death_date)
        if death is None:
            return
        upcoming = _next_occurrence(death, today)
        days_until = (upcoming - today).days
        if days_until > window_days:
            return
        results.append({
            "name": name,
            "deathDate": death.isoformat(),
            "anniversaryDate": upcoming.isoformat(),
            "years": upcoming.year - death.year,
            "daysUntil": days_until,
        })

    for member in flatten_tree(root):
        check(member.name, member.death_date)
        if member.spouse:
            check(member.spouse + SPOUSE_SUFFIX, member.spouse_death_date)

    return sorted(results, key=lambda r: r["daysUntil"])
