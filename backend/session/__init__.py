# Session module
from .coverage import CoverageState, detect, TOPICS
from .phases import PhaseTimer, PHASE_ORDER
from .transcript import Transcript, Turn
from .state import SessionState, SessionSnapshot
from .orchestrator import SessionOrchestrator
