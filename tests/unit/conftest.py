"""Shared fixtures."""

import pytest
from unittest.mock import Mock
from fake_cluster import FakeCluster
from immortaldb.reconciler import ImmortalDBReconciler
from immortaldb.sensors import OperatorSensor
from immortaldb.types.settings import Settings


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def conf():
    return Settings(database_port=5432, database_password="secret")


@pytest.fixture
def sensor():
    return Mock(spec=OperatorSensor)


@pytest.fixture
def reconciler(cluster, conf, sensor):
    return ImmortalDBReconciler(
        cluster.apps_v1_api,
        cluster.core_v1_api,
        cluster.custom_objects_api,
        conf=conf,
        sensor=sensor,
    )
