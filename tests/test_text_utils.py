import pytest
from conftest import make_report_item

from bionova.src.utils.text_utils import dedupe_report_items, is_allowed_source, normalize_title


def test_normalize_title_ignores_case_and_spacing():
    assert normalize_title("  Rodent   Research\t1 ") == normalize_title("rodent research 1")


def test_normalize_title_unifies_unicode_forms():
    assert normalize_title("Cafe\u0301 study") == normalize_title("Caf\u00e9 study")


def test_dedupe_keeps_first_occurrence():
    first = make_report_item("Bone loss in mice", 2014)
    echo = make_report_item("BONE LOSS IN MICE", 2014, source_url=None)
    other_year = make_report_item("Bone loss in mice", 2016)

    assert dedupe_report_items([first, echo, other_year]) == [first, other_year]


@pytest.mark.parametrize(
    "url",
    [
        "https://genelab.nasa.gov/data/GLDS-1",
        "http://data.nasa.gov/dataset/abc",
        "https://lsda.jsc.nasa.gov/Experiment/exper/123",
        "https://osdr.genelab.nasa.gov/bio/repo",
        "https://GENELAB.NASA.GOV/data",
    ],
)
def test_allow_listed_sources(url):
    assert is_allowed_source(url) is True


@pytest.mark.parametrize(
    "url",
    [
        None,
        "",
        "https://example.com/genelab.nasa.gov",
        "https://genelab.nasa.gov.evil.io/data",
        "https://nasa.gov/",
        "ftp://data.nasa.gov/file",
        "genelab.nasa.gov/data",
        "http://[genelab.nasa.gov/x",
    ],
)
def test_off_list_sources(url):
    assert is_allowed_source(url) is False


def test_custom_allow_list():
    assert is_allowed_source("https://pubmed.ncbi.nlm.nih.gov/1", allowed_domains=["ncbi.nlm.nih.gov"]) is True
