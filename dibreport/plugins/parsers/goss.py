import logging
import xml.etree.ElementTree as ET
from typing import Any, Dict, Union
from pydantic import ValidationError
from dibreport.core.exceptions import MalformedTestDocument
from dibreport.core.interfaces import ParserBase, RawDocument
from dibreport.core.models import TestResult
from dibreport.plugins.parsers.common import load_json, to_malformed

logger = logging.getLogger(__name__)

# <testsuite> attributes carried over as-is; they are all text in JUnit.
SUITE_ATTRIBUTES = ["name", "errors", "tests", "failures", "skipped", "time", "timestamp"]

class GossParser(ParserBase):
    def parse(self, document: RawDocument) -> TestResult:
        """Parse the JSON test summary written next to each image's build log."""
        data = load_json(document, MalformedTestDocument)
        return self._validate(data)

    def parse_junit(self, document: Union[str, bytes]) -> TestResult:
        """Parse the JUnit XML report produced by the test run."""
        try:
            root = ET.fromstring(document)
        except ET.ParseError as e:
            raise MalformedTestDocument(None, f"not valid XML ({e})")

        suite = root if root.tag == "testsuite" else root.find("testsuite")
        if suite is None:
            raise MalformedTestDocument("testsuite", "element not found")

        data: Dict[str, Any] = {k: suite.get(k) for k in SUITE_ATTRIBUTES if suite.get(k) is not None}
        data["testcases"] = [self._junit_case(case) for case in suite.findall("testcase")]
        return self._validate(data)

    def _junit_case(self, case: ET.Element) -> Dict[str, Any]:
        item = {
            "class_name": case.get("classname"),
            "file": case.get("file"),
            "name": case.get("name"),
            "time": case.get("time"),
        }
        item = {k: v for k, v in item.items() if v is not None}

        failure = case.find("failure")
        if failure is not None:
            # Goss puts the message in the body, other tools in the attribute
            item["failure"] = failure.text or failure.get("message") or ""
        system_out = case.find("system-out")
        if system_out is not None:
            item["system_out"] = system_out.text or ""
        if case.find("skipped") is not None:
            item["skipped"] = True
        return item

    def _validate(self, data: Dict[str, Any]) -> TestResult:
        try:
            result = TestResult.model_validate(data)
        except ValidationError as e:
            error = to_malformed(e, MalformedTestDocument)
            logger.error(f"Rejected test document for suite {data.get('name', 'unknown')}: {error}")
            raise error from e

        if not result.is_consistent:
            for problem in result.anomalies():
                logger.warning(f"Test suite {result.name}: {problem}")
        return result
