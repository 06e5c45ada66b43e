# Ambulance Dispatch — Database Models
# Import all models here for SQLAlchemy discovery

from app.models.driver import Driver                        # noqa
from app.models.ambulance_request import AmbulanceRequest   # noqa
