"""Object model tests."""

from litmeta.core.objects import (Blob, Tree, Commit, MODE_FILE, MODE_SUBMODULE,
                                  object_type_for_mode)


def test_blob_roundtrip():
    """Test blob serialize/deserialize cycle."""
    blob = Blob(b'')
    blob.deserialize(Blob(b'test content').serialize())
    assert blob.data == b'test content'
    assert blob.type == 'blob'


def test_blob_from_file(temp_dir):
    """Test blob creation from file."""
    path = temp_dir / 'file.txt'
    path.write_bytes(b'file content')
    assert Blob.from_file(path).data == b'file content'


def test_object_type_for_mode():
    assert object_type_for_mode('040000') == 'tree'
    assert object_type_for_mode(MODE_SUBMODULE) == 'commit'
    assert object_type_for_mode(MODE_FILE) == 'blob'


def test_tree_keeps_submodule_entries():
    """Pointer entries survive serialization as commit entries."""
    tree = Tree()
    tree.add_entry(MODE_FILE, 'blob', 'a' * 40, 'README')
    tree.add_entry(MODE_SUBMODULE, 'commit', 'b' * 40, 'libs')

    copy = Tree()
    copy.deserialize(tree.serialize())

    entry = copy.get_entry('libs')
    assert entry.is_submodule
    assert entry.type == 'commit'
    assert entry.hash == 'b' * 40
    assert not copy.get_entry('README').is_submodule
    assert copy.hash == tree.hash


def test_tree_add_entry_replaces_same_name():
    """Adding an entry twice keeps only the latest one."""
    tree = Tree()
    tree.add_entry(MODE_FILE, 'blob', 'a' * 40, 'file')
    tree.add_entry(MODE_FILE, 'blob', 'c' * 40, 'file')
    assert len(tree.entries) == 1
    assert tree.get_entry('file').hash == 'c' * 40


def test_commit_roundtrip():
    """Test commit serialize/deserialize keeps parents and message."""
    commit = Commit.create('t' * 40, ['1' * 40, '2' * 40], 'A <a@x>', 'C <c@x>',
                           'Merge\n\nbody', timestamp=1700000000)
    copy = Commit()
    copy.deserialize(commit.serialize())

    assert copy.tree == 't' * 40
    assert copy.parents == ['1' * 40, '2' * 40]
    assert copy.author == 'A <a@x>'
    assert copy.committer == 'C <c@x>'
    assert copy.author_time == 1700000000
    assert copy.message == 'Merge\n\nbody'
    assert copy.hash == commit.hash
