"""
federation/constants.py
─────────────────────────────────────────────────────────────────────
Federation-wide constants: points tables, fees, limits, geography.
"""
from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

SKILL_LEVELS = ("2.5", "3.0", "3.5", "4.0", "4.5", "5.0", "5.5")

# ── Ranking points for a tournament win, per NRTP level ─────────────
RANKING_POINTS = {
    "national": dict(zip(SKILL_LEVELS, (100, 150, 200, 250, 300, 350, 400))),
    "state":    dict(zip(SKILL_LEVELS, (50, 75, 100, 125, 150, 175, 200))),
    "local":    dict(zip(SKILL_LEVELS, (25, 35, 45, 55, 65, 75, 85))),
}

# tournament_type → points table
RANKING_TABLE_FOR_TYPE = {
    "international": "national",
    "national":      "national",
    "state":         "state",
    "local":         "local",
    "league":        "local",
    "exhibition":    "local",
}

# share of the winner's points by final position
FINISH_FACTORS = (
    (1, Decimal("1.00")),
    (2, Decimal("0.70")),
    (4, Decimal("0.50")),
    (8, Decimal("0.25")),
)
PARTICIPATION_FACTOR = Decimal("0.10")

# ── Membership fees (MXN) ────────────────────────────────────────────
MEMBERSHIP_FEES = {
    "player":  {"annual": Decimal("500"),  "monthly": Decimal("50")},
    "coach":   {"annual": Decimal("800"),  "monthly": Decimal("80")},
    "club":    {"basic":  Decimal("2000"), "premium": Decimal("5000")},
    "partner": {"premium": Decimal("8000")},
    "state":   {"annual": Decimal("15000")},
}

# ── Pagination ───────────────────────────────────────────────────────
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE     = 100

# ── Token lifetimes ──────────────────────────────────────────────────
EMAIL_VERIFICATION_TTL = timedelta(hours=24)
PASSWORD_RESET_TTL     = timedelta(hours=1)
CREDENTIAL_TOKEN_TTL   = timedelta(days=365)

# ── Account lockout ──────────────────────────────────────────────────
MAX_LOGIN_ATTEMPTS = 5
LOCKOUT_DURATION   = timedelta(minutes=30)

# ── Uploads ──────────────────────────────────────────────────────────
MAX_UPLOAD_SIZE      = 5 * 1024 * 1024
ALLOWED_UPLOAD_TYPES = ("image/jpeg", "image/png", "image/gif", "application/pdf")

# ── Court opening hours ──────────────────────────────────────────────
COURT_OPEN_HOUR  = 6
COURT_CLOSE_HOUR = 22

MEXICAN_STATES = (
    "Aguascalientes", "Baja California", "Baja California Sur", "Campeche",
    "Chiapas", "Chihuahua", "Ciudad de México", "Coahuila", "Colima",
    "Durango", "Estado de México", "Guanajuato", "Guerrero", "Hidalgo",
    "Jalisco", "Michoacán", "Morelos", "Nayarit", "Nuevo León", "Oaxaca",
    "Puebla", "Querétaro", "Quintana Roo", "San Luis Potosí", "Sinaloa",
    "Sonora", "Tabasco", "Tamaulipas", "Tlaxcala", "Veracruz", "Yucatán",
    "Zacatecas",
)
