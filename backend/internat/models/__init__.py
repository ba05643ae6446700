# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.

from internat.models.user import User  # noqa: F401  — doit précéder attendance et observation
from internat.models.student import Student  # noqa: F401
from internat.models.attendance import AttendanceRecord  # noqa: F401
from internat.models.observation import GroupObservation  # noqa: F401
from internat.models.recap import DailyRecap  # noqa: F401
