import pytest
from mockdb import make_pointer, make_date
from mockdb.errors import InvalidQueryError
from mockdb.config import StoreConfig
from mockdb.query import QueryEngine
from mockdb.store import DocumentStore


def names(results):
    return sorted(r['name'] for r in results)


def test_greater_than_scenario(db, run, seed):
    seed('Item', name='a', price=30)
    assert names(run(db.find('Item', {'price': {'$gt': 20}}))) == ['a']
    assert run(db.find('Item', {'price': {'$gt': 40}})) == []


def test_or_matches_union(db, run, seed):
    seed('Item', name='A', price=20)
    seed('Item', name='B', price=30)
    res = run(db.find('Item', {'$or': [{'price': 20}, {'price': 50}]}))
    assert names(res) == ['A']


def test_or_requires_list(db, run):
    with pytest.raises(InvalidQueryError):
        run(db.find('Item', {'$or': {'price': 20}}))


def test_plain_equality_and_and(db, run, seed):
    seed('Item', name='a', price=10, color='red')
    seed('Item', name='b', price=10, color='blue')
    assert names(run(db.find('Item', {'price': 10, 'color': 'blue'}))) == ['b']


def test_comparison_operators(db, run, seed):
    for p in (5, 10, 15):
        seed('Item', name=str(p), price=p)
    assert names(run(db.find('Item', {'price': {'$gte': 10}}))) == ['10', '15']
    assert names(run(db.find('Item', {'price': {'$lt': 10}}))) == ['5']
    assert names(run(db.find('Item', {'price': {'$lte': 10, '$gt': 5}}))) == ['10']
    assert names(run(db.find('Item', {'price': {'$ne': 10}}))) == ['15', '5']
    assert names(run(db.find('Item', {'price': {'$eq': 15}}))) == ['15']


def test_ordering_ignores_incomparable_values(db, run, seed):
    seed('Item', name='num', price=10)
    seed('Item', name='str', price='10')
    seed('Item', name='none')
    assert names(run(db.find('Item', {'price': {'$gt': 1}}))) == ['num']


def test_exists(db, run, seed):
    seed('Item', name='with', size=0)
    seed('Item', name='without')
    assert names(run(db.find('Item', {'size': {'$exists': True}}))) == ['with']
    assert names(run(db.find('Item', {'size': {'$exists': False}}))) == ['without']


def test_in_and_nin(db, run, seed):
    a = seed('Item', name='a', price=1)
    seed('Item', name='b', price=2)
    assert names(run(db.find('Item', {'price': {'$in': [2, 3]}}))) == ['b']
    assert names(run(db.find('Item', {'price': {'$nin': []}}))) == ['a', 'b']
    assert names(run(db.find('Item', {'objectId': {'$nin': [a['objectId']]}}))) == ['b']


def test_in_requires_array(db, run, seed):
    seed('Item', name='a', price=1)
    with pytest.raises(InvalidQueryError):
        run(db.find('Item', {'price': {'$in': 1}}))


def test_regex_strips_quote_markers(db, run, seed):
    seed('User', name='Tom Sawyer')
    seed('User', name='Huck')
    assert names(run(db.find('User', {'name': {'$regex': '^\\QTom\\E'}}))) == ['Tom Sawyer']
    assert names(run(db.find('User', {'name': {'$regex': 'huck', '$options': 'i'}}))) == ['Huck']


def test_regex_bad_option(db, run, seed):
    seed('User', name='Tom')
    with pytest.raises(InvalidQueryError):
        run(db.find('User', {'name': {'$regex': 'T', '$options': 'q'}}))


def test_all(db, run, seed):
    seed('Post', name='p1', tags=['a', 'b', 'c'])
    seed('Post', name='p2', tags=['a'])
    assert names(run(db.find('Post', {'tags': {'$all': ['a', 'c']}}))) == ['p1']


def test_pointer_equality(db, run, seed):
    brand = seed('Brand', name='Acme')
    seed('Item', name='x', brand=make_pointer('Brand', brand['objectId']))
    seed('Item', name='y')
    assert names(run(db.find('Item', {'brand': make_pointer('Brand', brand['objectId'])}))) == ['x']


def test_date_constraints(db, run, seed):
    seed('Event', name='old', at=make_date_iso('2020-01-01T00:00:00.000Z'))
    seed('Event', name='new', at=make_date_iso('2024-01-01T00:00:00.000Z'))
    cutoff = make_date_iso('2022-06-01T00:00:00.000Z')
    assert names(run(db.find('Event', {'at': {'$gt': cutoff}}))) == ['new']
    assert names(run(db.find('Event', {'at': make_date_iso('2020-01-01T00:00:00.000Z')}))) == ['old']


def test_created_at_is_queryable_as_date(db, run, seed):
    from datetime import datetime, timezone
    seed('Item', name='a')
    past = make_date(datetime(2000, 1, 1, tzinfo=timezone.utc))
    assert names(run(db.find('Item', {'createdAt': {'$gt': past}}))) == ['a']


def test_shorthand_nested_equality(db, run, seed):
    seed('Box', name='big', size={'width': 3, 'height': 4})
    seed('Box', name='small', size={'width': 1, 'height': 1})
    assert names(run(db.find('Box', {'size': {'width': 3}}))) == ['big']


def test_unknown_operator_is_rejected(db, run, seed):
    seed('Item', name='a', price=1)
    with pytest.raises(InvalidQueryError):
        run(db.find('Item', {'price': {'$near': 1}}))
    with pytest.raises(InvalidQueryError):
        run(db.find('Item', {'$and': [{'price': 1}]}))


def test_object_id_lookup(db, run, seed):
    a = seed('Item', name='a')
    seed('Item', name='b')
    assert names(run(db.find('Item', {'objectId': a['objectId'], 'name': 'ignored'}))) == ['a']


def test_select_counts_foreign_key_matches(db, run, seed):
    seed('Team', name='red', city='Oslo')
    seed('Team', name='blue', city='Rome')
    seed('Player', name='p1', hometown='Oslo')
    seed('Player', name='p2', hometown='Paris')
    where = {'hometown': {'$select': {'query': {'className': 'Team', 'where': {}}, 'key': 'city'}}}
    assert names(run(db.find('Player', where))) == ['p1']


def test_in_query_with_pointer(db, run, seed):
    acme = seed('Brand', name='Acme', country='NO')
    other = seed('Brand', name='Other', country='SE')
    seed('Item', name='x', brand=make_pointer('Brand', acme['objectId']))
    seed('Item', name='y', brand=make_pointer('Brand', other['objectId']))
    where = {'brand': {'$inQuery': {'className': 'Brand', 'where': {'country': 'NO'}}}}
    assert names(run(db.find('Item', where))) == ['x']


def test_in_query_with_relation_field(db, run, seed):
    apple = seed('Item', name='Apple', fresh=True)
    rock = seed('Item', name='Rock', fresh=False)
    run(db.create('Box', {'name': 'fruit', 'items': {'__op': 'AddRelation', 'objects': [
        make_pointer('Item', apple['objectId'])]}}))
    run(db.create('Box', {'name': 'stones', 'items': {'__op': 'AddRelation', 'objects': [
        make_pointer('Item', rock['objectId'])]}}))
    where = {'items': {'$inQuery': {'className': 'Item', 'where': {'fresh': True}}}}
    assert names(run(db.find('Box', where))) == ['fruit']


def test_cyclic_in_query_hits_depth_guard():
    store = DocumentStore()
    store.put('A', {'objectId': '1', 'ref': {'__type': 'Pointer', 'className': 'A', 'objectId': '1'}})
    engine = QueryEngine(store, StoreConfig(max_query_depth=4))
    where = {'ref': {'$inQuery': {'className': 'A', 'where': {}}}}
    inner = where
    for _ in range(10):
        nested = {'ref': {'$inQuery': {'className': 'A', 'where': {}}}}
        inner['ref']['$inQuery']['where'] = nested
        inner = nested
    with pytest.raises(InvalidQueryError):
        engine.match('A', where)


def test_match_returns_copies(db, run, seed):
    seed('Item', name='a', tags=['x'])
    first = run(db.find('Item'))
    first[0]['tags'].append('mutated')
    assert run(db.find('Item'))[0]['tags'] == ['x']


def test_where_must_be_mapping(db, run):
    with pytest.raises(InvalidQueryError):
        run(db.find('Item', ['price']))


def make_date_iso(iso):
    return {'__type': 'Date', 'iso': iso}


def test_malformed_date_operand_is_query_error(db, run, seed):
    seed('Event', name='old', at=make_date_iso('2020-01-01T00:00:00.000Z'))
    with pytest.raises(InvalidQueryError, match='not-a-date'):
        run(db.find('Event', {'at': {'$gt': make_date_iso('not-a-date')}}))
    with pytest.raises(InvalidQueryError):
        run(db.find('Event', {'at': make_date_iso('not-a-date')}))


def test_stored_malformed_date_does_not_break_queries(db, run, seed):
    seed('Event', name='bad', at=make_date_iso('garbage'))
    seed('Event', name='good', at=make_date_iso('2024-01-01T00:00:00.000Z'))
    assert run(db.find('Event', {'at': {'$exists': False}})) == []
    assert names(run(db.find('Event', {'at': {'$exists': True}}))) == ['bad', 'good']
    cutoff = make_date_iso('2022-06-01T00:00:00.000Z')
    assert names(run(db.find('Event', {'at': {'$gt': cutoff}}))) == ['good']
    assert names(run(db.find('Event', {'at': make_date_iso('2024-01-01T00:00:00.000Z')}))) == ['good']
