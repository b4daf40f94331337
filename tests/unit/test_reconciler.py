import pytest
from marshmallow import ValidationError
from kubernetes_asyncio.client import ApiException
from immortaldb.reconciler import ReconcileOutcome
from immortaldb.types.models import ResourceIdentifier
from immortaldb.utils.errors import OwnerReferenceError, conflict_error
from fake_cluster import api_error, immortaldb_body

FOO = ResourceIdentifier("default", "foo")


def deployment_of(cluster, namespace="default", name="foo"):
    return cluster.deployment(namespace, name)


@pytest.mark.asyncio
async def test_missing_resource_is_gone(cluster, reconciler):
    outcome = await reconciler.reconcile(FOO)

    assert outcome == ReconcileOutcome.GONE
    assert cluster.write_calls == 0
    cluster.apps_v1_api.read_namespaced_deployment.assert_not_awaited()


@pytest.mark.asyncio
async def test_creates_deployment_when_absent(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body(replicas=3))

    outcome = await reconciler.reconcile(FOO)

    assert outcome == ReconcileOutcome.CREATED
    cluster.apps_v1_api.create_namespaced_deployment.assert_awaited_once()
    deployment = deployment_of(cluster)
    assert deployment.metadata.name == "foo"
    assert deployment.metadata.namespace == "default"
    assert deployment.spec.replicas == 3
    assert deployment.spec.selector.match_labels == {"app": "foo"}
    assert deployment.spec.template.metadata.labels == {"app": "foo"}

    container = deployment.spec.template.spec.containers[0]
    assert container.image == "postgres:16"
    assert [port.container_port for port in container.ports] == [5432]
    assert [(env.name, env.value) for env in container.env] == [
        ("POSTGRES_PASSWORD", "secret")
    ]


@pytest.mark.asyncio
async def test_created_deployment_is_owned_by_resource(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body(uid="1234-abcd"))

    await reconciler.reconcile(FOO)

    owners = deployment_of(cluster).metadata.owner_references
    assert len(owners) == 1
    owner = owners[0]
    assert owner.api_version == "db.example.com/v1alpha1"
    assert owner.kind == "ImmortalDB"
    assert owner.name == "foo"
    assert owner.uid == "1234-abcd"
    assert owner.controller is True
    assert owner.block_owner_deletion is True


@pytest.mark.asyncio
async def test_creation_pass_defers_status(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body())
    cluster.add_pod("default", "foo-1", {"app": "foo"})

    await reconciler.reconcile(FOO)

    cluster.core_v1_api.list_namespaced_pod.assert_not_awaited()
    cluster.custom_objects_api.replace_namespaced_custom_object_status.assert_not_awaited()
    assert cluster.status("default", "foo") is None


@pytest.mark.parametrize("replicas", [0, 1, 5])
@pytest.mark.asyncio
async def test_scales_deployment_to_declared_replicas(cluster, reconciler, replicas):
    cluster.add_immortaldb(immortaldb_body(replicas=2))
    await reconciler.reconcile(FOO)
    cluster.set_spec("default", "foo", replicas=replicas)
    cluster.reset_calls()

    outcome = await reconciler.reconcile(FOO)

    assert outcome == ReconcileOutcome.RECONCILED
    assert deployment_of(cluster).spec.replicas == replicas
    cluster.apps_v1_api.replace_namespaced_deployment.assert_awaited_once()


@pytest.mark.asyncio
async def test_matching_replicas_issue_no_update(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body(replicas=2))
    await reconciler.reconcile(FOO)
    cluster.reset_calls()

    outcome = await reconciler.reconcile(FOO)

    assert outcome == ReconcileOutcome.RECONCILED
    assert cluster.write_calls == 0


@pytest.mark.asyncio
async def test_replicas_default_to_zero(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body(replicas=None))

    await reconciler.reconcile(FOO)

    assert deployment_of(cluster).spec.replicas == 0


@pytest.mark.asyncio
async def test_status_lists_pods_matching_selector(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body())
    await reconciler.reconcile(FOO)
    for name in ("foo-a", "foo-b", "foo-c"):
        cluster.add_pod("default", name, {"app": "foo"})
    cluster.add_pod("default", "bar-a", {"app": "bar"})
    cluster.add_pod("default", "bar-b", {"app": "bar"})
    cluster.add_pod("other", "foo-x", {"app": "foo"})

    await reconciler.reconcile(FOO)

    assert cluster.status("default", "foo") == {"nodes": ["foo-a", "foo-b", "foo-c"]}
    cluster.core_v1_api.list_namespaced_pod.assert_awaited_with(
        namespace="default", label_selector="app=foo"
    )


@pytest.mark.asyncio
async def test_status_follows_pod_changes(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body())
    await reconciler.reconcile(FOO)
    cluster.add_pod("default", "foo-a", {"app": "foo"})
    await reconciler.reconcile(FOO)
    assert cluster.status("default", "foo") == {"nodes": ["foo-a"]}

    cluster.pods.clear()
    await reconciler.reconcile(FOO)

    assert cluster.status("default", "foo") == {"nodes": []}


@pytest.mark.asyncio
async def test_missing_status_equals_empty_nodes(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body())
    await reconciler.reconcile(FOO)
    cluster.reset_calls()

    await reconciler.reconcile(FOO)

    cluster.core_v1_api.list_namespaced_pod.assert_awaited_once()
    cluster.custom_objects_api.replace_namespaced_custom_object_status.assert_not_awaited()


@pytest.mark.asyncio
async def test_converged_resource_needs_no_writes(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body(replicas=3))
    for name in ("foo-a", "foo-b", "foo-c"):
        cluster.add_pod("default", name, {"app": "foo"})
    await reconciler.reconcile(FOO)
    await reconciler.reconcile(FOO)
    cluster.reset_calls()

    for _ in range(3):
        assert await reconciler.reconcile(FOO) == ReconcileOutcome.RECONCILED

    assert cluster.write_calls == 0


@pytest.mark.asyncio
async def test_scale_and_status_in_one_pass(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body(replicas=1))
    await reconciler.reconcile(FOO)
    cluster.set_spec("default", "foo", replicas=2)
    cluster.add_pod("default", "foo-a", {"app": "foo"})
    cluster.reset_calls()

    await reconciler.reconcile(FOO)

    cluster.apps_v1_api.create_namespaced_deployment.assert_not_awaited()
    cluster.apps_v1_api.replace_namespaced_deployment.assert_awaited_once()
    cluster.custom_objects_api.replace_namespaced_custom_object_status.assert_awaited_once()


@pytest.mark.asyncio
async def test_recreates_deleted_deployment(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body())
    await reconciler.reconcile(FOO)
    cluster.deployments.clear()

    outcome = await reconciler.reconcile(FOO)

    assert outcome == ReconcileOutcome.CREATED
    assert deployment_of(cluster) is not None


@pytest.mark.asyncio
async def test_resources_are_reconciled_independently(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body(name="foo", uid="uid-foo", replicas=1))
    cluster.add_immortaldb(immortaldb_body(name="bar", uid="uid-bar", replicas=4))

    await reconciler.reconcile(FOO)
    await reconciler.reconcile(ResourceIdentifier("default", "bar"))

    assert deployment_of(cluster, name="foo").spec.replicas == 1
    assert deployment_of(cluster, name="bar").spec.replicas == 4
    assert deployment_of(cluster, name="bar").spec.selector.match_labels == {"app": "bar"}


@pytest.mark.asyncio
async def test_image_change_is_reported_not_applied(cluster, reconciler, sensor):
    cluster.add_immortaldb(immortaldb_body(image="postgres:15"))
    await reconciler.reconcile(FOO)
    cluster.set_spec("default", "foo", image="postgres:16")
    cluster.reset_calls()

    outcome = await reconciler.reconcile(FOO)

    assert outcome == ReconcileOutcome.RECONCILED
    cluster.apps_v1_api.replace_namespaced_deployment.assert_not_awaited()
    container = deployment_of(cluster).spec.template.spec.containers[0]
    assert container.image == "postgres:15"
    sensor.on_resource_drift_detected.assert_called_once_with(
        "foo", "foo", "default", "deployment", ["containers"]
    )


@pytest.mark.asyncio
async def test_no_drift_reported_for_created_deployment(cluster, reconciler, sensor):
    cluster.add_immortaldb(immortaldb_body())
    await reconciler.reconcile(FOO)

    await reconciler.reconcile(FOO)

    sensor.on_resource_drift_detected.assert_not_called()


@pytest.mark.asyncio
async def test_read_failure_aborts_pass(cluster, reconciler):
    cluster.custom_objects_api.get_namespaced_custom_object.side_effect = api_error(
        500, "Internal Server Error"
    )

    with pytest.raises(ApiException) as excinfo:
        await reconciler.reconcile(FOO)

    assert excinfo.value.status == 500
    assert cluster.write_calls == 0


@pytest.mark.asyncio
async def test_deployment_read_failure_does_not_create(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body())
    cluster.apps_v1_api.read_namespaced_deployment.side_effect = api_error(
        403, "Forbidden"
    )

    with pytest.raises(ApiException):
        await reconciler.reconcile(FOO)

    cluster.apps_v1_api.create_namespaced_deployment.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_failure_propagates(cluster, reconciler, sensor):
    cluster.add_immortaldb(immortaldb_body())
    cluster.apps_v1_api.create_namespaced_deployment.side_effect = api_error(
        422, "Unprocessable Entity"
    )

    with pytest.raises(ApiException):
        await reconciler.reconcile(FOO)

    args = sensor.on_reconcile_complete.call_args.args
    assert args[3] is None
    assert args[4] is False


@pytest.mark.asyncio
async def test_pod_list_failure_skips_status_write(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body())
    await reconciler.reconcile(FOO)
    cluster.core_v1_api.list_namespaced_pod.side_effect = api_error(
        500, "Internal Server Error"
    )

    with pytest.raises(ApiException):
        await reconciler.reconcile(FOO)

    cluster.custom_objects_api.replace_namespaced_custom_object_status.assert_not_awaited()


@pytest.mark.asyncio
async def test_stale_status_write_conflicts(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body())
    await reconciler.reconcile(FOO)
    cluster.add_pod("default", "foo-a", {"app": "foo"})
    stale = immortaldb_body()
    cluster.custom_objects_api.get_namespaced_custom_object.side_effect = None
    cluster.custom_objects_api.get_namespaced_custom_object.return_value = stale
    cluster.immortaldbs[("default", "foo")]["metadata"]["resourceVersion"] = "2"

    with pytest.raises(ApiException) as excinfo:
        await reconciler.reconcile(FOO)

    assert conflict_error(excinfo.value)
    assert cluster.status("default", "foo") is None


@pytest.mark.asyncio
async def test_scale_conflict_propagates(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body(replicas=1))
    await reconciler.reconcile(FOO)
    cluster.set_spec("default", "foo", replicas=2)
    cluster.apps_v1_api.replace_namespaced_deployment.side_effect = api_error(
        409, "Conflict", "the object has been modified"
    )

    with pytest.raises(ApiException) as excinfo:
        await reconciler.reconcile(FOO)

    assert conflict_error(excinfo.value)
    assert deployment_of(cluster).spec.replicas == 1


@pytest.mark.asyncio
async def test_missing_uid_prevents_creation(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body(uid=None))

    with pytest.raises(OwnerReferenceError):
        await reconciler.reconcile(FOO)

    cluster.apps_v1_api.create_namespaced_deployment.assert_not_awaited()


@pytest.mark.asyncio
async def test_invalid_spec_is_rejected(cluster, reconciler):
    cluster.add_immortaldb(immortaldb_body(replicas=-1))

    with pytest.raises(ValidationError):
        await reconciler.reconcile(FOO)

    assert cluster.write_calls == 0


@pytest.mark.asyncio
async def test_sensor_sees_pass_outcome(cluster, reconciler, sensor):
    cluster.add_immortaldb(immortaldb_body())

    await reconciler.reconcile(FOO, trigger_source="create")

    sensor.on_reconcile_start.assert_called_once_with("foo", "default", "create")
    args = sensor.on_reconcile_complete.call_args.args
    assert args[:2] == ("foo", "default")
    assert args[3:] == ("created", True)
    sensor.on_resource_sync_complete.assert_called_once()
    assert sensor.on_resource_sync_complete.call_args.args[5:] == ("create", True)
