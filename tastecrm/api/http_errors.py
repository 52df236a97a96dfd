"""Translation of flow exceptions into HTTP errors."""

import logging
from contextlib import contextmanager

from fastapi import HTTPException

from tastecrm.flows.collateral import SegmentNotFoundError
from tastecrm.flows.llm_gateway import LLMError
from tastecrm.flows.schemas import StructuredOutputError
from tastecrm.ingest.csv_parser import CsvIngestError

logger = logging.getLogger("tastecrm.api")


@contextmanager
def flow_errors(flow_name: str):
    """Run a flow, mapping domain errors to status codes.

    CsvIngestError -> 400, SegmentNotFoundError -> 404,
    LLMError / StructuredOutputError -> 500 with the message as detail.
    """
    try:
        yield
    except CsvIngestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SegmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (LLMError, StructuredOutputError) as e:
        logger.error("Flow %s failed: %s", flow_name, e, extra={"flow": flow_name})
        raise HTTPException(status_code=500, detail=str(e))
