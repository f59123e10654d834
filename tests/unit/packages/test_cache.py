"""Unit tests for cache management."""

from pathlib import Path

from dawnbuild.packages.cache import Cache


class TestCache:
    """Test cases for Cache class."""

    def test_init_default_directory(self, monkeypatch):
        """Test initialization with default directory."""
        monkeypatch.delenv("DAWNBUILD_CACHE_DIR", raising=False)
        cache = Cache()
        assert cache.root_dir == Path.cwd().resolve()
        assert cache.cache_root == cache.root_dir / ".dawnbuild" / "cache"
        assert cache.build_root == cache.root_dir / ".dawnbuild" / "build"

    def test_init_custom_directory(self, tmp_path, monkeypatch):
        """Test initialization with custom workspace directory."""
        monkeypatch.delenv("DAWNBUILD_CACHE_DIR", raising=False)
        cache = Cache(tmp_path)
        assert cache.root_dir == tmp_path.resolve()
        assert cache.cache_root == tmp_path.resolve() / ".dawnbuild" / "cache"

    def test_init_with_env_override(self, tmp_path, monkeypatch):
        """Test cache directory override via environment variable."""
        cache_dir = tmp_path / "custom_cache"
        monkeypatch.setenv("DAWNBUILD_CACHE_DIR", str(cache_dir))
        cache = Cache(tmp_path)
        assert cache.cache_root == cache_dir.resolve()
        # Builds stay in the workspace
        assert cache.build_root == tmp_path.resolve() / ".dawnbuild" / "build"

    def test_hash_url(self):
        """Test URL hashing function."""
        hash1 = Cache.hash_url("https://example.com/a")
        hash2 = Cache.hash_url("https://example.com/b")
        assert Cache.hash_url("https://example.com/a") == hash1
        assert hash1 != hash2
        assert len(hash1) == 16

    def test_directories(self, tmp_path, monkeypatch):
        """Test derived directories."""
        monkeypatch.delenv("DAWNBUILD_CACHE_DIR", raising=False)
        cache = Cache(tmp_path)
        root = tmp_path.resolve()
        assert cache.prebuilt_dir == root / ".dawnbuild" / "cache" / "prebuilt"
        assert cache.install_dir == root / ".dawnbuild" / "lib"

    def test_get_build_dir(self, tmp_path):
        """Test per-target build directories."""
        cache = Cache(tmp_path)
        build_dir = cache.get_build_dir("x86_64-linux-gnu")
        assert build_dir == cache.build_root / "x86_64-linux-gnu"
        assert cache.get_object_dir("x86_64-linux-gnu", "tint") == build_dir / "obj" / "tint"

    def test_get_prebuilt_path(self, tmp_path):
        """Test prebuilt cache paths."""
        cache = Cache(tmp_path)
        url = "https://example.com/libdawn.a.gz"
        path = cache.get_prebuilt_path(url, "762e368")
        assert path == cache.prebuilt_dir / Cache.hash_url(url) / "762e368"

    def test_ensure_build_directories(self, tmp_path):
        """Test directory creation."""
        cache = Cache(tmp_path)
        cache.ensure_build_directories("aarch64-macos")
        assert cache.get_build_dir("aarch64-macos").is_dir()
