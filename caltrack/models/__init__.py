# Importar todos los modelos para que Base.metadata los conozca
from caltrack.models.plant import Plant
from caltrack.models.department import Department
from caltrack.models.location import Location
from caltrack.models.user import User
from caltrack.models.equipment import Equipment
from caltrack.models.track_incoming import TrackIncoming
from caltrack.models.track_outgoing import TrackOutgoing
from caltrack.models.tracking_record import TrackingRecord

__all__ = [
    "Plant",
    "Department",
    "Location",
    "User",
    "Equipment",
    "TrackIncoming",
    "TrackOutgoing",
    "TrackingRecord",
]
