"""
CheckResult and GateReport models describing validation gate outcomes (ephemeral).
"""

from typing import Any, List, Literal

from pydantic import BaseModel, Field, model_validator


class CheckResult(BaseModel):
    """
    Outcome of one validation check (ephemeral, not persisted).

    Attributes:
        check_name: Unique name of the check
        check_type: Check type identifier (unique_key, domain, ...)
        table: Qualified table the check ran against
        severity: "error" (blocking) or "warning" (advisory)
        passed: True when no offending rows were found
        offending_count: Number of offending rows
        offending_keys: Key values of the offending rows
    """

    check_name: str
    check_type: str
    table: str
    severity: Literal["error", "warning"] = "warning"
    passed: bool
    offending_count: int = Field(0, ge=0)
    offending_keys: List[dict[str, Any]] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_passed_consistency(self):
        """passed=True implies there are no offending rows."""
        if self.passed and (self.offending_count > 0 or self.offending_keys):
            raise ValueError("passed=True but offending rows were reported")
        return self

    @property
    def blocking(self) -> bool:
        return self.severity == "error" and not self.passed

    class Config:
        json_schema_extra = {
            "example": {
                "check_name": "fact_sales_product_reference",
                "check_type": "referential_integrity",
                "table": "gold.fact_sales",
                "severity": "error",
                "passed": False,
                "offending_count": 1,
                "offending_keys": [
                    {"order_number": "SO43697", "product_key": None, "customer_key": 12}
                ],
            }
        }


class GateReport(BaseModel):
    """
    Combined outcome of a validation gate run.

    Attributes:
        results: One result per executed check, in battery order
    """

    results: List[CheckResult] = Field(default_factory=list)

    @property
    def blocking_failures(self) -> List[CheckResult]:
        return [r for r in self.results if r.blocking]

    @property
    def warnings(self) -> List[CheckResult]:
        return [r for r in self.results if not r.passed and r.severity == "warning"]

    @property
    def passed(self) -> bool:
        """True when no blocking check failed."""
        return not self.blocking_failures

    def get(self, check_name: str) -> CheckResult:
        """
        Find a result by check name.

        Raises:
            KeyError: If no check with that name ran
        """
        for result in self.results:
            if result.check_name == check_name:
                return result
        raise KeyError(check_name)

    def summary(self) -> dict[str, int]:
        return {
            "total_checks": len(self.results),
            "passed": sum(1 for r in self.results if r.passed),
            "blocking_failures": len(self.blocking_failures),
            "warnings": len(self.warnings),
        }
