"""
Parameter layout and numerical constants of the aeration model.

The constant parameter vector ``p_const`` is indexed with the names below.
"""

# Constant parameter layout
DILUTION_RATE = 0             # D [1/min]
INFLUENT_AMMONIUM = 1         # S_NH,in
NITRIFICATION_RATE = 2        # maximum nitrification rate
DENITRIFICATION_RATE = 3      # maximum denitrification rate
AMMONIUM_HALF_SATURATION = 4
NITRATE_HALF_SATURATION = 5
AERATION_POWER = 6            # [kW]
AMMONIUM_TAX = 7
NITRATE_TAX = 8
DAY_AHEAD_SHARPNESS = 9       # sigmoid sharpness of the price lookup
SWITCH_ON_SHARPNESS = 10
SWITCH_OFF_SHARPNESS = 11
N_CONSTANT_PARAMETERS = 12

# State layout
AMMONIUM = 0
NITRATE = 1
ENERGY_COST = 2
DISCHARGE_TAX = 3
N_STATES = 4

# Prices are per MWh, power in kW and time in minutes
PRICE_SCALE = 60.0 * 1000.0

# Argument cap of the capped exponential. exp(50) is finite, so the soft
# sign saturates to exactly +-1 instead of overflowing.
CEXP_CAP = 50.0

# Relative tolerance used when splitting a horizon into steps of dt
STEP_EPSILON = 1e-9
