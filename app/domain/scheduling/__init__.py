"""
Scheduling Domain

Opening hours, slot availability and manual closures for the clinic.

Structure:
```
app/domain/scheduling/
├── __init__.py
├── schemas.py              # Slot and closure schemas
├── repository.py           # Hour overrides and closure queries
├── time_calculator.py      # HH:MM arithmetic, periods, operating hours
├── availability_service.py # Candidate slots and per-slot verdicts
├── closure_service.py      # Manual closures and conflict checks
└── router.py               # /slots and /closures endpoints
```

Availability is read-only: it reads committed reservations on every call and
never caches capacity. Booking itself lives in app/domain/reservations, which
re-runs the same rules inside the admission lock.
"""
