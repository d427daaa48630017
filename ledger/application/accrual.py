"""
Application Use Case — Earnings Accrual

One accrual cycle manufactures a charging session for every Active device
and books it through one atomic unit per device:

- the owning Account's balance, monthly and lifetime aggregates are
  incremented with F() expressions;
- the Device's earnings and busy minutes are incremented and its
  utilization recomputed under a row lock;
- an earning Activity is appended, already settled (balance_updated=True)
  since its amount is folded in by the same unit.

All random draws happen before the unit starts, so a retried unit replays
the same writes. Devices are independent: one device failing to commit is
logged and counted and never rolls back or blocks another.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import timedelta
from datetime import timezone as dt_timezone
from decimal import ROUND_HALF_UP, Decimal

from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError
from django.db.models import F
from django.utils import timezone

from ledger.application.store import atomic_unit
from ledger.conf import ledger_settings
from ledger.domain.exceptions import LedgerError
from ledger.domain.sampling import CENT, WeightedSampler, uniform_amount
from ledger.models import Account, Activity, Device

logger = logging.getLogger(__name__)

KWH = Decimal("0.001")
MINUTES = Decimal("0.01")
MILES = Decimal("0.1")
PERCENT = Decimal("0.01")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class Tier:
    name: str
    low: Decimal
    high: Decimal


@dataclass(frozen=True)
class PackageProfile:
    name: str
    rated_power_kw: Decimal
    tiers: WeightedSampler


@dataclass(frozen=True)
class AccrualConfig:
    packages: dict
    region_prices: dict
    default_price: Decimal
    peak_start: int
    peak_end: int
    peak_multiplier: Decimal
    co2_factor: Decimal
    miles_per_kwh: Decimal
    idle_probability: float
    interval_minutes: int
    vehicles: WeightedSampler = None

    def is_peak(self, hour):
        return self.peak_start <= hour <= self.peak_end

    def price_for(self, region):
        return self.region_prices.get(region, self.default_price)


@dataclass(frozen=True)
class SessionDraft:
    tier: str
    amount: Decimal
    energy_kwh: Decimal
    co2_kg: Decimal
    duration_minutes: Decimal
    miles: Decimal
    vehicle: str = None
    peak: bool = False

    def as_details(self):
        return {
            "tier": self.tier,
            "vehicle": self.vehicle,
            "energy_kwh": float(self.energy_kwh),
            "duration_minutes": float(self.duration_minutes),
            "miles_added": float(self.miles),
            "co2_offset_kg": float(self.co2_kg),
            "peak": self.peak,
        }


@dataclass
class AccrualReport:
    processed: int = 0
    idle: int = 0
    unconfigured: int = 0
    deactivated: int = 0
    failed: int = 0
    total_amount: Decimal = Decimal("0.00")
    failed_devices: list = field(default_factory=list)


def _positive_decimal(value, name):
    amount = Decimal(str(value))
    if amount <= 0:
        raise ImproperlyConfigured(f"LEDGER[{name!r}] must be positive, got {value!r}")
    return amount


def load_accrual_config():
    """Builds the accrual configuration from settings.LEDGER."""
    conf = ledger_settings()

    packages = {}
    for name, package in conf["PACKAGES"].items():
        tiers = WeightedSampler(
            (tier["weight"], Tier(tier.get("name", ""), Decimal(str(tier["min"])), Decimal(str(tier["max"]))))
            for tier in package["tiers"]
        )
        packages[name] = PackageProfile(
            name=name,
            rated_power_kw=_positive_decimal(package["rated_power_kw"], "PACKAGES"),
            tiers=tiers,
        )

    vehicles = WeightedSampler(conf["VEHICLES"]) if conf["VEHICLES"] else None

    return AccrualConfig(
        packages=packages,
        region_prices={
            region: _positive_decimal(price, "REGION_PRICES")
            for region, price in conf["REGION_PRICES"].items()
        },
        default_price=_positive_decimal(conf["DEFAULT_PRICE_PER_KWH"], "DEFAULT_PRICE_PER_KWH"),
        peak_start=int(conf["PEAK_HOURS_START"]),
        peak_end=int(conf["PEAK_HOURS_END"]),
        peak_multiplier=Decimal(str(conf["PEAK_MULTIPLIER"])),
        co2_factor=Decimal(str(conf["CO2_KG_PER_KWH"])),
        miles_per_kwh=Decimal(str(conf["MILES_PER_KWH"])),
        idle_probability=float(conf["IDLE_PROBABILITY"]),
        interval_minutes=int(conf["ACCRUAL_INTERVAL_MINUTES"]),
        vehicles=vehicles,
    )


def draw_session(profile, config, *, region, hour, rng):
    """Manufactures one charging session for a device of the given package."""
    tier = profile.tiers.sample(rng)
    amount = uniform_amount(tier.low, tier.high, rng)

    peak = config.is_peak(hour)
    if peak:
        amount = (amount * config.peak_multiplier).quantize(CENT, rounding=ROUND_HALF_UP)

    energy = (amount / config.price_for(region)).quantize(KWH, rounding=ROUND_HALF_UP)
    co2 = (energy * config.co2_factor).quantize(KWH, rounding=ROUND_HALF_UP)

    # Charging rarely runs at exactly the rated power.
    effective_power = profile.rated_power_kw * Decimal(str(rng.uniform(0.9, 1.1)))
    duration = (energy / effective_power * 60).quantize(MINUTES, rounding=ROUND_HALF_UP)

    miles = (energy * config.miles_per_kwh).quantize(MILES, rounding=ROUND_HALF_UP)
    vehicle = config.vehicles.sample(rng) if config.vehicles else None

    return SessionDraft(
        tier=tier.name,
        amount=amount,
        energy_kwh=energy,
        co2_kg=co2,
        duration_minutes=duration,
        miles=miles,
        vehicle=vehicle,
        peak=peak,
    )


def period_start(now):
    """First instant of the current UTC calendar month."""
    now = now.astimezone(dt_timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def minutes_since_period_start(now):
    elapsed = Decimal(str((now - period_start(now)).total_seconds())) / 60
    return max(elapsed, Decimal(1))


def compute_utilization(busy_minutes, elapsed_minutes):
    """Busy share of the elapsed period as a percentage, capped at 100."""
    elapsed = max(Decimal(elapsed_minutes), Decimal(1))
    raw = max(Decimal(busy_minutes), Decimal(0)) / elapsed * HUNDRED
    return min(raw, HUNDRED).quantize(PERCENT, rounding=ROUND_HALF_UP)


def _book_session(device_id, draft, occurred_at, elapsed_minutes):
    def book():
        device = Device.objects.select_for_update().get(id=device_id)
        if device.status != Device.Status.ACTIVE:
            return None
        busy = device.monthly_duration_minutes + draft.duration_minutes

        Account.objects.filter(id=device.account_id).update(
            available_balance=F("available_balance") + draft.amount,
            monthly_earnings=F("monthly_earnings") + draft.amount,
            monthly_kwh_delivered=F("monthly_kwh_delivered") + draft.energy_kwh,
            monthly_sessions=F("monthly_sessions") + 1,
            monthly_co2_offset=F("monthly_co2_offset") + draft.co2_kg,
            lifetime_earnings=F("lifetime_earnings") + draft.amount,
            lifetime_kwh_delivered=F("lifetime_kwh_delivered") + draft.energy_kwh,
            lifetime_sessions=F("lifetime_sessions") + 1,
            lifetime_co2_offset=F("lifetime_co2_offset") + draft.co2_kg,
        )
        Device.objects.filter(id=device.id).update(
            lifetime_earnings=F("lifetime_earnings") + draft.amount,
            monthly_earnings=F("monthly_earnings") + draft.amount,
            monthly_duration_minutes=F("monthly_duration_minutes") + draft.duration_minutes,
            utilization=compute_utilization(busy, elapsed_minutes),
        )
        return Activity.objects.create(
            account_id=device.account_id,
            device_id=device.id,
            type=Activity.Type.EARNING,
            amount=draft.amount,
            description=f"Earning from {device.display_name()}",
            timestamp=occurred_at,
            balance_updated=True,
            session_details=draft.as_details(),
        )

    return book


def simulate_earnings(*, now=None, rng=None, config=None):
    """Runs one accrual cycle over every Active device."""
    now = now or timezone.now()
    rng = rng or random.Random()
    config = config or load_accrual_config()

    hour = now.astimezone(dt_timezone.utc).hour
    elapsed_minutes = minutes_since_period_start(now)
    report = AccrualReport()

    devices = list(
        Device.objects.filter(status=Device.Status.ACTIVE)
        .only("id", "account", "package", "region")
        .order_by("id")
    )
    logger.info(
        "Starting accrual cycle: devices=%s hour=%s peak=%s",
        len(devices), hour, config.is_peak(hour),
    )

    for device in devices:
        profile = config.packages.get(device.package)
        if profile is None:
            logger.debug("No profile for package %r: device=%s", device.package, device.id)
            report.unconfigured += 1
            continue

        if rng.random() < config.idle_probability:
            report.idle += 1
            continue

        draft = draw_session(profile, config, region=device.region, hour=hour, rng=rng)
        backdate = timedelta(seconds=rng.uniform(0, config.interval_minutes * 60))
        # Never stamp an entry into the month before the one it is counted in.
        occurred_at = max(now - backdate, period_start(now))

        try:
            earning = atomic_unit(
                _book_session(device.id, draft, occurred_at, elapsed_minutes),
                label="accrue_device",
            )
        except (LedgerError, DatabaseError, Device.DoesNotExist) as exc:
            logger.error("Accrual failed: device=%s error=%s", device.id, exc)
            report.failed += 1
            report.failed_devices.append(device.id)
            continue

        if earning is None:
            logger.info("Device deactivated during cycle: device=%s", device.id)
            report.deactivated += 1
            continue

        logger.debug(
            "Booked session: account=%s device=%s amount=%s",
            device.account_id, device.id, draft.amount,
        )
        report.processed += 1
        report.total_amount += draft.amount

    logger.info(
        "Accrual cycle complete: processed=%s idle=%s unconfigured=%s deactivated=%s failed=%s total=%s",
        report.processed, report.idle, report.unconfigured, report.deactivated,
        report.failed, report.total_amount,
    )
    return report
