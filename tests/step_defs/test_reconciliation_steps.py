"""
BDD step definitions for startup reconciliation

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: tests/step_defs/test_reconciliation_steps.py
Created: 2026-10-19
Author: Confsyncer Contributors
Type: BDD Step Definitions

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  Confsyncer  CREATE  Steps for pull-from-remote and push of
                                local-only files.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from pytest_bdd import scenarios, given, when, then, parsers

from confsyncer.exceptions import ConfSyncError, EnumerationError
from confsyncer.sync_engine import Syncer

# Load all scenarios from the feature file
scenarios('../features/reconciliation.feature')


def get_syncer(bdd_context) -> Syncer:
    if bdd_context.syncer is None:
        bdd_context.syncer = Syncer(bdd_context.local_store, bdd_context.remote_store)
    return bdd_context.syncer


# =============================================================================
# Given Steps - Setup
# =============================================================================

@given("an empty local store")
def empty_local_store(bdd_context, make_store):
    bdd_context.local_store = make_store("local")


@given("an empty remote store")
def empty_remote_store(bdd_context, make_store):
    bdd_context.remote_store = make_store("remote")


@given(parsers.parse('the local store has "{key}" with content "{content}"'))
def local_store_has(bdd_context, key, content):
    bdd_context.local_store.items[key] = content.encode()


@given(parsers.parse('the remote store has "{key}" with content "{content}"'))
def remote_store_has(bdd_context, key, content):
    bdd_context.remote_store.items[key] = content.encode()


@given("the remote store cannot be enumerated")
def remote_store_unavailable(bdd_context):
    bdd_context.remote_store.fail_list = True


@given(parsers.parse('writes of "{key}" to the local store fail'))
def local_writes_fail(bdd_context, key):
    bdd_context.local_store.fail_keys.add(key)


# =============================================================================
# When Steps - Actions
# =============================================================================

@when("the syncer reconciles the stores")
def reconcile_stores(bdd_context):
    try:
        bdd_context.results.extend(get_syncer(bdd_context).reconcile())
    except ConfSyncError as e:
        bdd_context.last_error = e


@when("the syncer pulls from the remote store")
def pull_from_remote(bdd_context):
    bdd_context.results.append(get_syncer(bdd_context).pull_from_remote())


# =============================================================================
# Then Steps - Assertions
# =============================================================================

@then(parsers.parse('the local store has "{key}" with content "{content}"'))
def local_store_contains(bdd_context, key, content):
    assert bdd_context.local_store.items.get(key) == content.encode()


@then(parsers.parse('the remote store has "{key}" with content "{content}"'))
def remote_store_contains(bdd_context, key, content):
    assert bdd_context.remote_store.items.get(key) == content.encode()


@then(parsers.parse('both stores contain exactly "{keys}"'))
def both_stores_contain(bdd_context, keys):
    expected = {key.strip() for key in keys.split(",")}
    assert set(bdd_context.local_store.items) == expected
    assert set(bdd_context.remote_store.items) == expected


@then("no events are queued on the local store")
def no_local_events(bdd_context):
    assert bdd_context.local_store.drain() == []


@then("reconciliation fails with an enumeration error")
def reconciliation_failed(bdd_context):
    assert isinstance(bdd_context.last_error, EnumerationError)
    assert bdd_context.results == []


@then("the local store was not written")
def local_not_written(bdd_context):
    assert bdd_context.local_store.write_calls() == []


@then(parsers.parse('{count:d} item failed during the pull'))
def items_failed(bdd_context, count):
    result = bdd_context.results[-1]
    assert result.operation == "pull_from_remote"
    assert result.items_failed == count
    assert result.success is False
