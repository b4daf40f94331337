from immortaldb.common.models.labels import Labels


def test_generate_default_labels():
    labels = Labels.generate_default_labels(
        "foo", "ImmortalDB", "database", "immortaldb-operator"
    )

    assert labels.as_dict() == {
        "db.example.com/kind": "ImmortalDB",
        "db.example.com/cluster": "foo",
        "app.kubernetes.io/name": "immortaldb",
        "app.kubernetes.io/instance": "foo",
        "app.kubernetes.io/component": "database",
        "app.kubernetes.io/part-of": "immortaldb-foo",
        "app.kubernetes.io/managed-by": "immortaldb-operator",
    }


def test_as_str_is_a_label_selector():
    assert Labels({"app": "foo", "tier": "db"}).as_str() == "app=foo,tier=db"
    assert Labels().as_str() == ""


def test_part_of_is_trimmed_to_valid_label_value():
    name = "x" * 70 + "-"
    labels = Labels().include_kubernetes_part_of(name)

    value = labels.as_dict()[Labels.KUBERNETES_PART_OF_LABEL]
    assert len(value) == 63
    assert value.startswith("immortaldb-")


def test_contains_and_equality():
    labels = Labels({"app": "foo", "tier": "db"})

    assert labels.contains(Labels({"app": "foo"}))
    assert not labels.contains(Labels({"app": "bar"}))
    assert labels == Labels({"tier": "db", "app": "foo"})
    assert labels != Labels.empty()
