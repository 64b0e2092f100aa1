import os
import time
import logging

from collections import namedtuple

from . import data
from .errors import CorruptObject, InvalidIdFormat, IoFailure

logger = logging.getLogger(__name__)

FILE_MODE = '100644'
# git writes 40000 as the access mode inside trees,
# `cat-file -p` shows it padded as 040000
DIR_MODE = '40000'

#default identity for commits, overridable per call
AUTHOR = 'Alias Anon <a@a.com>'
TZ_OFFSET = '+0530'

TreeEntry = namedtuple('TreeEntry', ['mode', 'name', 'oid'])
Signature = namedtuple('Signature', ['identity', 'timestamp', 'offset'])
Commit = namedtuple('Commit', ['tree', 'parent', 'author', 'committer', 'message'])

def init():
    data.init()

def store_blob(content):
    return data.hash_object(content, 'blob')

def read_blob(oid):
    return data.get_object(oid, 'blob')

def is_ignored(name):
    return name.startswith('.') #hidden files, and .git itself

def _entry_key(entry):
    return os.fsencode(entry[1]) #byte order of the name

#each entry is "<mode> <name>\0" followed by the 20 raw bytes of the child id
def encode_tree(entries):
    entries = list(entries)
    seen = set()
    for mode, name, _ in entries:
        if not str(mode).isdigit():
            raise ValueError(f'tree entry mode must be digits, got {mode!r}')
        if not name or '\x00' in name or '/' in name:
            raise ValueError(f'tree entry name must be a single path segment, got {name!r}')
        if name in seen:
            raise ValueError(f'duplicate tree entry {name!r}')
        seen.add(name)
    return b''.join(
        f'{mode} '.encode() + os.fsencode(name) + b'\x00' + data.hex_to_id(oid)
        for mode, name, oid in sorted(entries, key=_entry_key))

def decode_tree(payload):
    cursor = 0
    while cursor < len(payload):
        nul = payload.find(b'\x00', cursor)
        if nul == -1:
            raise CorruptObject('tree entry is missing its NUL terminator')
        mode, sep, name = payload[cursor:nul].partition(b' ')
        if not sep or not name or not mode.isdigit():
            raise CorruptObject(f'malformed tree entry {payload[cursor:nul]!r}')
        raw = payload[nul + 1:nul + 21]
        if len(raw) < 20:
            raise CorruptObject(f'tree entry {name!r} is truncated')
        yield TreeEntry(mode.decode(), os.fsdecode(name), data.id_to_hex(raw))
        cursor = nul + 21

def mktree(entries): #stores a tree from (mode, name, oid) entries in any order
    return data.hash_object(encode_tree(entries), 'tree')

def list_tree_entries(oid):
    return list(decode_tree(data.get_object(oid, 'tree')))

#saves the directory in the object database and returns the tree OID,
#or None if nothing under it could be stored
def write_tree(directory='.'):
    entries = []
    try:
        with os.scandir(directory) as it:
            dir_entries = list(it)
    except OSError as e:
        raise IoFailure(f'cannot list {directory}: {e}') from e

    for entry in dir_entries:
        if is_ignored(entry.name):
            continue
        # symlinks are neither files nor directories here
        if entry.is_dir(follow_symlinks=False):
            oid = write_tree(entry.path)
            if oid is None:
                logger.debug('skipping empty directory %s', entry.path)
                continue
            entries.append(TreeEntry(DIR_MODE, entry.name, oid))
        elif entry.is_file(follow_symlinks=False):
            try:
                with open(entry.path, 'rb') as f:
                    content = f.read()
            except OSError as e:
                raise IoFailure(f'cannot read {entry.path}: {e}') from e
            entries.append(TreeEntry(FILE_MODE, entry.name, store_blob(content)))
        else:
            logger.debug('skipping %s: not a regular file or directory', entry.path)

    if not entries:
        return None
    oid = mktree(entries)
    logger.debug('wrote tree %s for %s (%d entries)', oid, directory, len(entries))
    return oid

def _normalize_oid(oid):
    return data.id_to_hex(data.hex_to_id(oid))

#identity and offset go on a header line; offset is the last space-separated field
def _check_signature(signature):
    if '\n' in signature.identity:
        raise ValueError(f'identity must be a single line, got {signature.identity!r}')
    if not signature.offset or ' ' in signature.offset or '\n' in signature.offset:
        raise ValueError(f'offset must be a single token, got {signature.offset!r}')

def encode_commit(tree, parent, author, committer, message):
    _check_signature(author)
    _check_signature(committer)
    commit = f'tree {tree}\n'
    if parent:
        commit += f'parent {parent}\n'
    commit += f'author {author.identity} {author.timestamp} {author.offset}\n'
    commit += f'committer {committer.identity} {committer.timestamp} {committer.offset}\n'
    commit += '\n'
    commit += f'{message}\n'
    return commit.encode()

#makes the commit object and returns its OID
def commit(tree_oid, parent_oid, message, author=None, timestamp=None, offset=None):
    if timestamp is None:
        timestamp = int(time.time())
    signature = Signature(
        identity=author or AUTHOR,
        timestamp=timestamp,
        offset=offset or TZ_OFFSET,
    )
    tree_oid = _normalize_oid(tree_oid)
    data.get_object(tree_oid, 'tree') #must exist and be a tree
    if parent_oid:
        parent_oid = _normalize_oid(parent_oid)
        data.get_object(parent_oid, 'commit')
    oid = data.hash_object(
        encode_commit(tree_oid, parent_oid, signature, signature, message), 'commit')
    logger.debug('wrote commit %s (tree %s, parent %s)', oid, tree_oid, parent_oid)
    return oid

def _parse_signature(value):
    parts = value.rsplit(' ', 2) #identity may itself contain spaces
    if len(parts) != 3 or not parts[1].isdigit():
        raise CorruptObject(f'malformed signature {value!r}')
    identity, timestamp, offset = parts
    return Signature(identity=identity, timestamp=int(timestamp), offset=offset)

def decode_commit(payload):
    try:
        text = payload.decode()
    except UnicodeDecodeError as e:
        raise CorruptObject(f'commit is not valid utf-8: {e}') from e
    header, sep, message = text.partition('\n\n')
    if not sep:
        raise CorruptObject('commit has no blank line before its message')

    fields = {}
    for line in header.split('\n'):
        key, _, value = line.partition(' ')
        if not value:
            raise CorruptObject(f'commit header line {line!r} has no value')
        if key not in ('tree', 'parent', 'author', 'committer'):
            raise CorruptObject(f'unknown commit field {key}')
        if key in fields:
            raise CorruptObject(f'duplicate commit field {key}')
        fields[key] = value

    if 'tree' not in fields:
        raise CorruptObject('commit has no tree')
    try:
        tree = _normalize_oid(fields['tree'])
        parent = _normalize_oid(fields['parent']) if 'parent' in fields else None
    except InvalidIdFormat as e:
        raise CorruptObject(f'commit references a bad id: {e}') from e

    author = _parse_signature(fields['author']) if 'author' in fields else None
    committer = _parse_signature(fields['committer']) if 'committer' in fields else None
    if message.endswith('\n'):
        message = message[:-1]
    return Commit(tree=tree, parent=parent, author=author, committer=committer, message=message)

def get_commit(oid):
    return decode_commit(data.get_object(oid, 'commit'))
