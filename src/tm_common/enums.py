"""Global enums — values are what the API and the event stream carry."""

from enum import Enum


class Action(str, Enum):
    BUY = "buy"
    SELL = "sell"
    WAIT = "wait"

    @classmethod
    def parse(cls, value: object) -> "Action":
        """Map anything unrecognized to WAIT."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.WAIT


class Personality(str, Enum):
    FRUGAL = "frugal"
    IMPULSIVE = "impulsive"
    SKEPTICAL = "skeptical"


class LifecyclePhase(str, Enum):
    """Idle → Starting → Running → Stopping → Idle"""
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class TerminationReason(str, Enum):
    INVENTORY_DEPLETED = "inventory_depleted"
    ROUND_LIMIT_REACHED = "round_limit_reached"


class EventType(str, Enum):
    CONNECTED = "connected"
    SIMULATION_STARTED = "simulation_started"
    TICK = "tick"
    SIMULATION_ENDED = "simulation_ended"
    SIMULATION_STOPPED = "simulation_stopped"


class ControlAction(str, Enum):
    START = "start"
    STOP = "stop"
