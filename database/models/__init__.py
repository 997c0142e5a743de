from .user_model import BotRole, User
from .event_model import Event
from .event_role_model import EventRole
from .roster_signup_model import RosterSignup
from .availability_slot_model import AvailabilitySlot
from .user_preferences_model import UserPreferences
from .template_model import Template
from .template_role_model import TemplateRole
from .availability_override_model import AvailabilityOverride
from .absence_model import Absence
