import logging
from pydantic import ValidationError
from dibreport.core.exceptions import MalformedScanDocument
from dibreport.core.interfaces import ParserBase, RawDocument
from dibreport.core.models import VulnerabilityScanResult
from dibreport.plugins.parsers.common import load_json, to_malformed

logger = logging.getLogger(__name__)

class TrivyParser(ParserBase):
    def parse(self, document: RawDocument) -> VulnerabilityScanResult:
        data = load_json(document, MalformedScanDocument)
        try:
            result = VulnerabilityScanResult.model_validate(data)
        except ValidationError as e:
            error = to_malformed(e, MalformedScanDocument)
            logger.error(f"Rejected scan document for {data.get('ArtifactName', 'unknown artifact')}: {error}")
            raise error from e
        logger.debug(
            f"Parsed scan of {result.artifact_name}: {len(result.results)} targets, "
            f"{sum(1 for _ in result.iter_vulnerabilities())} vulnerabilities"
        )
        return result
