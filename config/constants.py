"""
Centralized Constants Configuration
====================================

All magic numbers used by the perception -> cognition cycle are defined here
so the encoder, the agent client and the orchestrator agree on them.

Usage:
    from config.constants import VECTOR_SIZE, STEPS_PER_CYCLE

Categories:
- Sensory Encoding: Layout of the 256-float input vector
- Cycle: Orchestrator sequencing parameters
- Agent Roles: Defaults for the translator and cognitive tiers
- Reservoir: Startup and background stepping parameters
"""

# =============================================================================
# Sensory Encoding Constants (core/encoder.py)
# =============================================================================

# Length of every input vector handed to the reservoir
VECTOR_SIZE = 256

# Odd multiplicative constant (Knuth) used to spread token ids over the vector
TOKEN_HASH_MULTIPLIER = 2654435761

# Token hashes are computed on 64-bit words, then shifted right
TOKEN_HASH_MASK = (1 << 64) - 1
TOKEN_HASH_SHIFT = 16

# Per-token contribution: TOKEN_BASE_WEIGHT + (t mod TOKEN_MOD) / TOKEN_DIVISOR
TOKEN_BASE_WEIGHT = 0.5
TOKEN_MOD = 100
TOKEN_DIVISOR = 200.0

# Scale applied to seed embedding values
SEED_EMBEDDING_SCALE = 0.1

# Number of consecutive indices touched by one sensory stimulus
SENSORY_WINDOW = 6

# Weight added for each neurogenesis request
NEUROGENESIS_WEIGHT = 1.0

# Defaults used when decoding partial translator output
DEFAULT_STRENGTH = 1.0
DEFAULT_INTENSITY = 1.0
DEFAULT_RECEPTOR = "default"
DEFAULT_CLUSTER_LABEL = "ng"

# =============================================================================
# Cycle Constants (core/orchestrator.py)
# =============================================================================

# Reservoir steps between applying inputs and exporting the summary
STEPS_PER_CYCLE = 4

# Fallback user text is the raw response cut to this many characters
MAX_FALLBACK_TEXT_CHARS = 400

# Completed cycles kept in memory for inspection
CYCLE_HISTORY_LIMIT = 50

# =============================================================================
# Agent Role Constants (integrations/agent_client.py)
# =============================================================================

ROLE_TRANSLATOR = "translator"
ROLE_COGNITIVE = "cognitive"

DEFAULT_PIXTRAL_AGENT = "ag:ddacd900:20250823:untitled-agent:633c61ee"
DEFAULT_MAGISTRAL_AGENT = "ag:ddacd900:20250823:untitled-agent:50c34ed9"

TRANSLATOR_FALLBACK_MODEL = "mistral-medium-1"
TRANSLATOR_MAX_TOKENS = 300
TRANSLATOR_TEMPERATURE = 0.0

COGNITIVE_FALLBACK_MODEL = "pixtral-large-1"
COGNITIVE_MAX_TOKENS = 600
COGNITIVE_TEMPERATURE = 0.7

# Per HTTP call, in seconds
DEFAULT_AGENT_TIMEOUT_SECONDS = 8.0

MISTRAL_API_URL = "https://api.mistral.ai/v1"

# =============================================================================
# Reservoir Constants (core/reservoir.py, core/supervisor.py)
# =============================================================================

DEFAULT_NEURON_COUNT = 20000
DEFAULT_FANOUT = 8

# Seed for the simulated reservoir's random connectivity
RESERVOIR_SEED = 1337

# Background stepping period, in seconds
DEFAULT_STEP_INTERVAL_SECONDS = 1.0

# Join timeout when stopping the background stepper
STEPPER_JOIN_TIMEOUT_SECONDS = 5.0

# =============================================================================
# Server Constants (server/cognitive_server.py)
# =============================================================================

DEFAULT_PORT = 3000

# Upper bound for one request handled in the executor
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0

DEFAULT_RATE_LIMIT = "60/minute"
