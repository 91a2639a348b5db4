"""Internal constants shared across the library."""

# ------------------------------------------------------------------
# Timing defaults (milliseconds)
# ------------------------------------------------------------------

DEFAULT_DELAY_MS = 1000
DEFAULT_DECODING_COMPILATION_MS = 2000
DEFAULT_PACKET_COMPILATION_MS = 5000
DEFAULT_HISTORY_MS = 20000
DEFAULT_KEEP_ALIVE_MS = 5000
DEFAULT_DISAPPEARANCE_MS = 15000
DEFAULT_DYNAMB_FRESHNESS_MS = 15000
DEFAULT_MIN_REARM_MS = 50

# ------------------------------------------------------------------
# Attribute whitelists
# ------------------------------------------------------------------

DEFAULT_DYNAMB_PROPERTIES: tuple[str, ...] = (
    "acceleration",
    "accelerationSamplingRate",
    "accelerationTimeSeries",
    "ammoniaConcentration",
    "amperage",
    "amperages",
    "angleOfRotation",
    "batteryPercentage",
    "batteryVoltage",
    "carbonDioxideConcentration",
    "carbonMonoxideConcentration",
    "dissolvedOxygen",
    "distance",
    "elevation",
    "heading",
    "heartRate",
    "illuminance",
    "interactionDigest",
    "isButtonPressed",
    "isContactDetected",
    "isHealthy",
    "isMotionDetected",
    "isLiquidDetected",
    "levelPercentage",
    "magneticField",
    "methaneConcentration",
    "nearest",
    "nitrogenDioxideConcentration",
    "numberOfOccupants",
    "passageCounts",
    "pm1.0",
    "pm2.5",
    "pm10",
    "position",
    "pressure",
    "pressures",
    "relativeHumidity",
    "soundPressure",
    "speed",
    "temperature",
    "temperatures",
    "txCount",
    "unicodeCodePoints",
    "uptime",
    "velocityOverall",
    "volatileOrganicCompoundsConcentration",
    "voltage",
    "voltages",
)

DEFAULT_STATID_PROPERTIES: tuple[str, ...] = (
    "appearance",
    "deviceIds",
    "languages",
    "name",
    "uri",
    "uuids",
    "version",
)

# Decoded property carrying relay metadata from protocol-specific data.
RELAY_PROPERTY = "relay"

# Dynamb property listing nearby devices and their signal strengths.
NEAREST_PROPERTY = "nearest"

# ------------------------------------------------------------------
# Outbound bus topics
# ------------------------------------------------------------------

TOPIC_RADDEC = "raddec"
TOPIC_DYNAMB = "dynamb"
TOPIC_RELAY = "relay"
