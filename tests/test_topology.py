"""Tests for install topology detection."""
from stage_proxy.topology import Topology

LOCAL = "http://local.test/wp-content/uploads"


def make_topology(**kwargs) -> Topology:
    kwargs.setdefault("uploads_base_url", LOCAL)
    kwargs.setdefault("uploads_base_dir", "/tmp/uploads")
    return Topology(**kwargs)


def test_root_install_strips_nothing():
    assert make_topology().local_subpath_to_strip() == ""


def test_single_site_core_in_subdirectory():
    """Application under /wp/ while the site lives at the root."""
    topology = make_topology(home_path="/", site_path="/wp/")
    assert topology.local_subpath_to_strip() == "/wp"


def test_single_site_in_shared_subdirectory():
    topology = make_topology(home_path="/blog/", site_path="/blog/")
    assert topology.local_subpath_to_strip() == "/blog"


def test_multisite_subpath_uses_home_path():
    topology = make_topology(home_path="/us/", site_path="/", multisite=True)
    assert topology.local_subpath_to_strip() == "/us"


def test_multisite_ignores_core_subdirectory():
    """The site-path rule only applies to single sites."""
    topology = make_topology(home_path="/", site_path="/wp/", multisite=True)
    assert topology.local_subpath_to_strip() == ""


def test_site_path_rule_wins_over_home_path():
    topology = make_topology(home_path="/a/", site_path="/a/core/")
    assert topology.local_subpath_to_strip() == "/a/core"


def test_canonical_root_keeps_tenant_for_subpath_network():
    topology = make_topology(
        home_path="/us/",
        multisite=True,
        uploads_base_url="http://local.test/us/wp-content/uploads/sites/2",
    )
    assert topology.canonical_asset_root == "/wp-content/uploads/sites/2"


def test_canonical_root_drops_tenant_for_subdomain_network():
    topology = make_topology(
        multisite=True,
        subdomain_install=True,
        uploads_base_url="http://us.local.test/wp-content/uploads/sites/2",
    )
    assert topology.canonical_asset_root == "/wp-content/uploads"


def test_canonical_root_for_single_site():
    topology = make_topology(home_path="/blog/", site_path="/blog/")
    assert topology.canonical_asset_root == "/wp-content/uploads"


def test_from_settings(test_settings):
    topology = Topology.from_settings(test_settings)
    assert topology.home_path == ""
    assert topology.local_subpath_to_strip() == ""
    assert topology.uploads_base_url == LOCAL
    assert topology.uploads_path == "/wp-content/uploads"
