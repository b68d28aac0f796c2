from datetime import date, timedelta

from fx_convert import FxConvert, RateUnavailableError

print(FxConvert.__version__)  # 0.1.0

# In-memory store; use a DSN such as "postgresql://..." to persist elsewhere
fx = FxConvert("memory://")

# Today's rate is fetched from the first provider that answers and stored
result = fx.convert(100, "USD", "ILS")
print(result.converted_amount, result.source.value)

# Operator override beats any provider quote for the same day
fx.set_manual_rate("USD", "EUR", "0.91", date.today())
print(fx.convert(250, "USD", "EUR"))

# A month-old date is never fetched; the nearest stored rate is used instead
old = date.today() - timedelta(days=20)
try:
    print(fx.convert(250, "EUR", "USD", old))
except RateUnavailableError as exc:
    print(exc)

# Degraded mode returns the original amount, flagged with source "none"
print(fx.convert(10, "GBP", "JPY", date(2001, 1, 1), degrade=True))

# Fetch the common pairs that have no rate for today
report = fx.refresh_missing()
print(report.updated, report.failed, report.skipped)

print(fx.latest_rates("ILS"))
