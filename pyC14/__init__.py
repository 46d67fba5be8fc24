from pyC14.c14age import (
    radiocarbon_age,
    age_from_concentration,
    radiocarbon_sources,
    default_params,
    C14Params,
)
