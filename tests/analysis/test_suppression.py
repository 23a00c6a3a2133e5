"""
Tests for the Suppression marker check.
"""

from recoverlint.analysis.declarations import Declaration, SourcePosition
from recoverlint.analysis.suppression import has_suppression_marker


def make(doc):
  return Declaration(name="f", package="main", position=SourcePosition("main.go", 1, 1), doc=tuple(doc))


def test_marker_anywhere_in_doc():
  declaration = make(["// worker loops forever", "// nolint: no-recover-warning (owned by supervisor)"])
  assert has_suppression_marker(declaration, "no-recover-warning")


def test_no_doc_never_suppressed():
  assert not has_suppression_marker(make([]), "no-recover-warning")


def test_other_marker_does_not_match():
  assert not has_suppression_marker(make(["// no-recover-warning"]), "skip-recover")


def test_empty_marker_disables_suppression():
  assert not has_suppression_marker(make(["// anything"]), "")


def test_block_comment_doc(go_sources):
  src = go_sources(
    """
    package main

    /*
    Serve blocks.
    no-recover-warning
    */
    func Serve() {
      select {}
    }
    """
  )
  declaration = src.decl("Serve")
  assert has_suppression_marker(declaration, "no-recover-warning")
  assert src.analyze("Serve").suppressed
