"""City to state lookup, scoped by country.

Lead forms usually ask for a city only; the CRM also files leads by state, so
the state is derived here when the form did not collect it. Cities come from
the GeoNames extract bundled with ``geonamescache``.
"""

from __future__ import annotations

import unicodedata
from functools import lru_cache

from geonamescache import GeonamesCache

from ..config import settings

# Historic or colloquial names -> name used by GeoNames.
CITY_ALIASES: dict[str, str] = {
    "bangalore": "bengaluru",
    "bombay": "mumbai",
    "calcutta": "kolkata",
    "madras": "chennai",
    "pondicherry": "puducherry",
    "trivandrum": "thiruvananthapuram",
    "cochin": "kochi",
    "calicut": "kozhikode",
    "mysore": "mysuru",
    "mangalore": "mangaluru",
    "belgaum": "belagavi",
    "gurgaon": "gurugram",
    "hubli": "hubballi",
    "gulbarga": "kalaburagi",
    "shimoga": "shivamogga",
    "tumkur": "tumakuru",
    "bellary": "ballari",
    "baroda": "vadodara",
    "poona": "pune",
    "benares": "varanasi",
    "banaras": "varanasi",
    "allahabad": "prayagraj",
    "vizag": "visakhapatnam",
    "trichy": "tiruchirappalli",
    "tuticorin": "thoothukudi",
    "alleppey": "alappuzha",
    "quilon": "kollam",
    "trichur": "thrissur",
    "cuttack city": "cuttack",
    "new bombay": "navi mumbai",
}

# GeoNames admin1 codes for India -> state or union territory name.
IN_STATES: dict[str, str] = {
    "01": "Andaman and Nicobar Islands",
    "02": "Andhra Pradesh",
    "03": "Assam",
    "05": "Chandigarh",
    "07": "Delhi",
    "09": "Gujarat",
    "10": "Haryana",
    "11": "Himachal Pradesh",
    "12": "Jammu and Kashmir",
    "13": "Kerala",
    "14": "Lakshadweep",
    "16": "Maharashtra",
    "17": "Manipur",
    "18": "Meghalaya",
    "19": "Karnataka",
    "20": "Nagaland",
    "21": "Odisha",
    "22": "Puducherry",
    "23": "Punjab",
    "24": "Rajasthan",
    "25": "Tamil Nadu",
    "26": "Tripura",
    "28": "West Bengal",
    "29": "Sikkim",
    "30": "Arunachal Pradesh",
    "31": "Mizoram",
    "33": "Goa",
    "34": "Bihar",
    "35": "Madhya Pradesh",
    "36": "Uttar Pradesh",
    "37": "Chhattisgarh",
    "38": "Jharkhand",
    "39": "Uttarakhand",
    "40": "Telangana",
    "41": "Ladakh",
    "52": "Dadra and Nagar Haveli and Daman and Diu",
}

_MIN_PARTIAL_LENGTH = 3


def fold_name(value: str) -> str:
    """Lower-case and strip diacritics, so "Hosūr" and "hosur" compare equal."""
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).strip().lower()


@lru_cache(maxsize=1)
def _geonames() -> GeonamesCache:
    return GeonamesCache(min_city_population=settings.geo_min_city_population)


def _state_names(country: str) -> dict[str, str]:
    if country == "IN":
        return IN_STATES
    if country == "US":
        return {code: state["name"] for code, state in _geonames().get_us_states().items()}
    return {}


@lru_cache(maxsize=8)
def _city_index(country: str) -> tuple[list[tuple[str, str]], dict[str, str]]:
    """Cities of one country, largest first.

    Returns (folded name, state) pairs for the primary names and a map of
    folded alternate names to the state of the largest city carrying them.
    """
    states = _state_names(country)
    if not states:
        return [], {}

    cities = [
        city
        for city in _geonames().get_cities().values()
        if city.get("countrycode") == country and city.get("admin1code") in states
    ]
    cities.sort(key=lambda city: city.get("population") or 0, reverse=True)

    primary: list[tuple[str, str]] = []
    alternates: dict[str, str] = {}
    for city in cities:
        state = states[city["admin1code"]]
        primary.append((fold_name(city["name"]), state))
        for alt in city.get("alternatenames") or ():
            alternates.setdefault(fold_name(alt), state)
    return primary, alternates


def state_for_city(city: str | None, country: str = "IN") -> str | None:
    """Return the state a city belongs to, or None when it is not known.

    Aliases are resolved first, then an exact match on the city's own name,
    then on its alternate names, then the largest city whose name contains
    the query.
    """
    if not city:
        return None
    needle = fold_name(str(city))
    if not needle:
        return None
    needle = CITY_ALIASES.get(needle, needle)

    primary, alternates = _city_index(country.strip().upper())
    for name, state in primary:
        if name == needle:
            return state
    if needle in alternates:
        return alternates[needle]

    if len(needle) < _MIN_PARTIAL_LENGTH:
        return None
    for name, state in primary:
        if needle in name:
            return state
    return None
