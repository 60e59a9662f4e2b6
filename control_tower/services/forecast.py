"""
Forecast Service

Straight-line 30-day projection of the current period's daily pace for leads,
appointments and revenue, compared to configured monthly targets.

    rangeDays  = whole days spanned by the window (inclusive, at least 1)
    dailyPace  = current total / rangeDays
    forecast30 = dailyPace * 30
    gap        = forecast30 - monthly target   (negative = behind target)
"""

from control_tower.core.config import Settings
from control_tower.models.schemas import Forecast, ForecastFigures, ForecastGap
from control_tower.services.range_resolver import TimeRange, range_days
from control_tower.services.stats import round_half_up, round_to
from control_tower.services.summaries import PeriodTotals


FORECAST_DAYS = 30


def build_forecast(current: PeriodTotals, window: TimeRange, settings: Settings) -> Forecast:
    """
    Project the current pace over 30 days.

    Args:
        current: Current-period collaborator totals.
        window: The current report window.
        settings: Supplies the monthly targets.

    Returns:
        Forecast section of the overview.
    """
    days = range_days(window)
    daily_leads = current.leads / days
    daily_appointments = current.appointments / days
    daily_revenue = current.revenue / days

    forecast30 = ForecastFigures(
        leads=round_half_up(daily_leads * FORECAST_DAYS),
        appointments=round_half_up(daily_appointments * FORECAST_DAYS),
        revenue=round_to(daily_revenue * FORECAST_DAYS, 2),
    )
    target = ForecastFigures(
        leads=settings.target_leads_monthly,
        appointments=settings.target_appointments_monthly,
        revenue=settings.target_revenue_monthly,
    )

    return Forecast(
        rangeDays=days,
        currentPeriod=ForecastFigures(
            leads=current.leads,
            appointments=current.appointments,
            revenue=round_to(current.revenue, 2),
        ),
        dailyPace=ForecastFigures(
            leads=round_to(daily_leads, 2),
            appointments=round_to(daily_appointments, 2),
            revenue=round_to(daily_revenue, 2),
        ),
        forecast30=forecast30,
        targetMonthly=target,
        targetForRange=ForecastFigures(
            leads=round_half_up(target.leads / FORECAST_DAYS * days),
            appointments=round_half_up(target.appointments / FORECAST_DAYS * days),
            revenue=round_to(target.revenue / FORECAST_DAYS * days, 2),
        ),
        forecastVsTarget=ForecastGap(
            leadsGap=forecast30.leads - target.leads,
            appointmentsGap=forecast30.appointments - target.appointments,
            revenueGap=round_to(forecast30.revenue - target.revenue, 2),
        ),
    )
