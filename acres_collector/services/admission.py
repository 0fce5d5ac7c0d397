"""County allow-list gate for incoming comps."""
from typing import Any, Mapping, Union

import structlog

from ..config.counties import ALLOWED_FIPS_CODES
from ..errors import AdmissionRejected
from ..models import CourthouseComp

logger = structlog.get_logger(__name__)


def admit(comp: Union[CourthouseComp, Mapping[str, Any]]) -> bool:
    """
    Return True iff the comp's FIPS code is one of the target counties.

    A missing or empty code is rejected. Rejection is an ordinary result, not
    an error; the caller drops the comp.
    """
    if isinstance(comp, Mapping):
        fips_code = comp.get('fips_code')
    else:
        fips_code = comp.fips_code

    fips_code = str(fips_code) if fips_code else ''
    if fips_code in ALLOWED_FIPS_CODES:
        return True

    logger.debug("Skipping property outside allowed counties",
                 fips_code=fips_code,
                 reason=AdmissionRejected.__name__,
                 allowed=sorted(ALLOWED_FIPS_CODES))
    return False
