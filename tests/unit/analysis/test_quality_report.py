from __future__ import annotations

from toolcore.analysis import analyze_quality, categorize_complexity, categorize_score

CLEAN = '''def add(left, right):
    """Return the sum."""
    return left + right
'''

RISKY = """def run(expr):
    password = "hunter22"
    return eval(expr)
"""


def test_report_shape_and_category_agree() -> None:
    report = analyze_quality("math_utils.py", CLEAN)

    assert report["file"] == "math_utils.py"
    assert report["language"] == "python"
    assert 0 <= report["overall_score"] <= 100
    assert report["category"] == categorize_score(report["overall_score"])
    for key in ("complexity", "security", "performance", "code_smells"):
        assert key in report
    assert report["security"] == []


def test_security_findings_include_eval_and_credentials() -> None:
    report = analyze_quality("runner.py", RISKY)

    findings = {(item["line"], item["description"]) for item in report["security"]}
    assert (2, "Hard-coded credential") in findings
    assert (3, "eval() allows arbitrary code execution") in findings
    assert all(item["severity"] == "critical" for item in report["security"])
    assert any(issue["type"] == "security" for issue in report["top_issues"])


def test_risky_code_scores_lower_than_clean_code() -> None:
    clean = analyze_quality("a.py", CLEAN)
    risky = analyze_quality("b.py", RISKY)

    assert risky["overall_score"] < clean["overall_score"]


def test_eval_inside_javascript_string_is_not_flagged() -> None:
    report = analyze_quality("view.js", "const label = 'eval(x)';\n")

    assert report["security"] == []


def test_score_categories() -> None:
    assert categorize_score(95) == "excellent"
    assert categorize_score(80) == "good"
    assert categorize_score(70) == "moderate"
    assert categorize_score(60) == "poor"
    assert categorize_score(59.9) == "critical"


def test_complexity_categories() -> None:
    assert categorize_complexity(5) == "low"
    assert categorize_complexity(10) == "medium"
    assert categorize_complexity(15) == "high"
    assert categorize_complexity(16) == "critical"
