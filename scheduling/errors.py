class SchedulingError(Exception):
    """Базовая ошибка ядра расписания."""


class LockedError(SchedulingError):
    def __init__(self, day: int, hour: int, status):
        self.day = day
        self.hour = hour
        self.status = status
        super().__init__(f"Slot ({day}, {hour}) is locked with status '{status}'")


class RosterError(SchedulingError):
    pass


class RosterFullError(RosterError):
    def __init__(self, event_id: int, role):
        self.event_id = event_id
        self.role = role
        super().__init__(f"Role '{role}' is full for event {event_id}")


class ConflictError(RosterError):
    pass


class PositionConflictError(ConflictError):
    def __init__(self, event_id: int, role, position: int):
        self.event_id = event_id
        self.role = role
        self.position = position
        super().__init__(f"Position {role}:{position} of event {event_id} is already taken")


class AlreadyJoinedError(ConflictError):
    def __init__(self, event_id: int, user_id: int):
        self.event_id = event_id
        self.user_id = user_id
        super().__init__(f"User {user_id} already holds an assignment in event {event_id}")


class AssignmentNotFoundError(RosterError):
    def __init__(self, event_id: int, user_id: int):
        self.event_id = event_id
        self.user_id = user_id
        super().__init__(f"User {user_id} has no assignment in event {event_id}")


class SignupNotFoundError(RosterError):
    def __init__(self, event_id: int, signup_id: int):
        self.event_id = event_id
        self.signup_id = signup_id
        super().__init__(f"Signup {signup_id} not found in event {event_id}")


class EventNotFoundError(SchedulingError):
    def __init__(self, event_id: int):
        self.event_id = event_id
        super().__init__(f"Event {event_id} not found")


class AvailabilitySaveError(SchedulingError):
    def __init__(self, day: int, hour: int, cause: Exception | None = None):
        self.day = day
        self.hour = hour
        self.cause = cause
        super().__init__(f"Failed to save availability for ({day}, {hour}): {cause}")
