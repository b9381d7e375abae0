import pytest

from kazilens.errors import ProviderError
from kazilens.schema import normalize_insight, normalize_jobs, normalize_resume_analysis, try_parse_json


class TestTryParseJson:
    def test_plain_json(self):
        assert try_parse_json('{"score": 80}') == {"score": 80}

    def test_json_wrapped_in_prose(self):
        text = 'Here you go:\n```json\n{"score": 72, "skills": ["SQL"]}\n```'
        assert try_parse_json(text) == {"score": 72, "skills": ["SQL"]}

    def test_list_wrapped_in_prose(self):
        assert try_parse_json('Results: ["Analyst", "Engineer"] done') == ["Analyst", "Engineer"]

    def test_no_json(self):
        with pytest.raises(ProviderError):
            try_parse_json("I could not find any jobs.")

    def test_empty(self):
        with pytest.raises(ProviderError):
            try_parse_json("   ")


class TestNormalize:
    def test_resume_analysis_clamped(self):
        analysis = normalize_resume_analysis({
            "score": 104.6,
            "parsedName": " Amina Otieno ",
            "parsedRole": "Data Analyst",
            "improvements": ["a", "b", "c", "d"],
            "skills": ["SQL", "", "Python"],
            "summary": "Analyst with 4 years of experience.",
        })
        assert analysis.score == 100
        assert analysis.parsed_name == "Amina Otieno"
        assert analysis.improvements == ["a", "b", "c"]
        assert analysis.skills == ["SQL", "Python"]

    def test_resume_analysis_bad_score(self):
        assert normalize_resume_analysis({"score": "n/a"}).score == 0

    def test_resume_analysis_requires_object(self):
        with pytest.raises(ProviderError):
            normalize_resume_analysis(["not", "an", "object"])

    def test_jobs(self):
        jobs = normalize_jobs({"jobs": [
            {"title": "Data Analyst", "company": "Safaricom", "employmentType": "contract",
             "locationType": "REMOTE", "requirements": "SQL"},
            {"company": "No title"},
            {"id": "x1", "title": "BI Developer", "company": "KCB", "employmentType": "Temporary"},
        ]})
        assert [j.title for j in jobs] == ["Data Analyst", "BI Developer"]
        assert jobs[0].id == "job-1"
        assert jobs[0].employment_type == "Contract"
        assert jobs[0].location_type == "Remote"
        assert jobs[0].requirements == ["SQL"]
        assert jobs[1].id == "x1"
        assert jobs[1].employment_type == "Full-time"
        assert jobs[1].location_type == "On-site"

    def test_jobs_requires_list(self):
        with pytest.raises(ProviderError):
            normalize_jobs("nothing")

    @pytest.mark.parametrize("raw,expected", [
        ("Strong Match", "Strong Match"),
        ("gaps detected", "Gaps Detected"),
        ("Very strong fit", "Strong Match"),
        ("Some gaps", "Gaps Detected"),
        ("maybe", "Potential Match"),
    ])
    def test_insight_status(self, raw, expected):
        insight = normalize_insight({"status": raw, "reasoning": "r", "missingKeywords": ["Tableau"], "tipsToWin": "t"})
        assert insight.status == expected
        assert insight.missing_keywords == ["Tableau"]
