import pytest

from studyaid.highlight import (
    HighlightError,
    KeywordEntry,
    match_keywords,
    segment_stats,
    find_segment,
)


def kw(keyword, detail=''):
    return KeywordEntry(keyword=keyword, detail=detail)


def as_pairs(segments):
    return [(s.kind, s.content) for s in segments]


@pytest.mark.unit
def test_segments_reassemble_to_source(sample_text, sample_keywords):
    entries = [KeywordEntry(**k) for k in sample_keywords]
    segments = match_keywords(sample_text, entries)
    assert ''.join(s.content for s in segments) == sample_text
    assert all(s.content for s in segments)


@pytest.mark.unit
def test_longer_keyword_wins():
    segments = match_keywords('The amino acid and acid', [kw('acid'), kw('amino acid')])
    assert as_pairs(segments) == [
        ('text', 'The '),
        ('keyword', 'amino acid'),
        ('text', ' and '),
        ('keyword', 'acid'),
    ]
    assert segments[1].keyword.keyword == 'amino acid'
    assert segments[3].keyword.keyword == 'acid'


@pytest.mark.unit
def test_case_insensitive_keeps_source_casing():
    segments = match_keywords('PHOTOSYNTHESIS is key', [kw('photosynthesis', 'light to sugar')])
    assert as_pairs(segments) == [('keyword', 'PHOTOSYNTHESIS'), ('text', ' is key')]
    assert segments[0].keyword.detail == 'light to sugar'


@pytest.mark.unit
def test_special_characters_are_literal():
    segments = match_keywords('axb a.b C++ (x)', [kw('a.b'), kw('C++'), kw('(x)')])
    assert as_pairs(segments) == [
        ('text', 'axb '),
        ('keyword', 'a.b'),
        ('text', ' '),
        ('keyword', 'C++'),
        ('text', ' '),
        ('keyword', '(x)'),
    ]


@pytest.mark.unit
def test_duplicate_keywords_resolve_to_first_entry():
    entries = [kw('Cell', 'first'), kw('cell', 'second')]
    segments = match_keywords('a cell', entries)
    assert segments[1].keyword is entries[0]
    assert segments[1].keyword.detail == 'first'


@pytest.mark.unit
def test_adjacent_matches_have_no_empty_text_between():
    segments = match_keywords('abab', [kw('ab')])
    assert as_pairs(segments) == [('keyword', 'ab'), ('keyword', 'ab')]


@pytest.mark.unit
def test_overlap_is_left_to_right_and_non_overlapping():
    segments = match_keywords('abc', [kw('ab'), kw('bc')])
    assert as_pairs(segments) == [('keyword', 'ab'), ('text', 'c')]


@pytest.mark.unit
def test_no_keywords_returns_single_text_segment():
    assert as_pairs(match_keywords('plain text', [])) == [('text', 'plain text')]


@pytest.mark.unit
def test_empty_source_returns_no_segments():
    assert match_keywords('', []) == []
    assert match_keywords('', [kw('acid')]) == []


@pytest.mark.unit
def test_no_match_returns_whole_text():
    assert as_pairs(match_keywords('nothing here', [kw('acid')])) == [('text', 'nothing here')]


@pytest.mark.unit
def test_empty_keyword_rejected():
    with pytest.raises(HighlightError):
        match_keywords('text', [KeywordEntry.model_construct(keyword='', detail='')])


@pytest.mark.unit
def test_keyword_entry_requires_text():
    with pytest.raises(ValueError):
        KeywordEntry(keyword='')


@pytest.mark.unit
def test_segment_stats():
    segments = match_keywords('acid, ACID and base', [kw('acid'), kw('base')])
    assert segment_stats(segments) == {
        'segment_count': 5,
        'text_segments': 2,
        'keyword_segments': 3,
        'distinct_keywords': 2,
    }


@pytest.mark.unit
def test_find_segment():
    segments = match_keywords('The acid and base', [kw('acid'), kw('base')])
    found = find_segment(segments, 'BASE')
    assert found is not None
    assert found.content == 'base'
    assert find_segment(segments, 'salt') is None


@pytest.mark.unit
def test_amino_acid_chains():
    segments = match_keywords('amino acid chains', [kw('acid'), kw('amino acid')])
    assert as_pairs(segments) == [('keyword', 'amino acid'), ('text', ' chains')]


@pytest.mark.unit
def test_dna_matches_with_original_casing():
    entry = kw('dna', 'genetic material')
    segments = match_keywords('DNA replication uses Dna polymerase', [entry])
    assert as_pairs(segments) == [
        ('keyword', 'DNA'),
        ('text', ' replication uses '),
        ('keyword', 'Dna'),
        ('text', ' polymerase'),
    ]
    assert all(s.keyword is entry for s in segments if s.kind == 'keyword')


@pytest.mark.unit
def test_mitochondria_absent_passes_text_through():
    text = 'The cell wall is rigid.'
    assert as_pairs(match_keywords(text, [kw('mitochondria')])) == [('text', text)]
