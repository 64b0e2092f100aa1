#serves as disk: the loose object database under GIT_DIR/objects
import os #filesystem access for the object files and fan-out directories
import re
import hashlib # sha1 is what names every object
import logging
import tempfile
import zlib #objects are stored deflated, the same as git

from contextlib import contextmanager

from .errors import CorruptObject, InvalidIdFormat, IoFailure, ObjectNotFound, ObjectTypeMismatch

logger = logging.getLogger(__name__)

GIT_DIR = '.git' #relative to the current working directory unless changed below
COMPRESSION_LEVEL = -1 #zlib default
TYPES = ('blob', 'tree', 'commit')

_HEX_ID = re.compile(r'[0-9a-fA-F]{40}')
_HEADER = re.compile(rb'(blob|tree|commit) ([0-9]+)')

@contextmanager
def change_git_dir (new_dir):
    global GIT_DIR
    old_dir = GIT_DIR
    GIT_DIR = f'{new_dir}/.git'
    try:
        yield
    finally:
        GIT_DIR = old_dir #restoring

def init(): #makes .git with objects and refs, and the one static HEAD pointer
    try:
        os.makedirs (GIT_DIR)
    except FileExistsError:
        raise IoFailure(f'{GIT_DIR} already exists') from None
    os.makedirs (f'{GIT_DIR}/objects')
    os.makedirs (f'{GIT_DIR}/refs')
    with open (f'{GIT_DIR}/HEAD', 'w') as f:
        f.write ('ref: refs/heads/master\n')
    logger.debug('initialized object database in %s', GIT_DIR)

def digest(data): #20 raw bytes
    return hashlib.sha1(data).digest()

def id_to_hex(raw):
    return raw.hex()

def hex_to_id(oid):
    if not isinstance(oid, str) or not _HEX_ID.fullmatch(oid):
        raise InvalidIdFormat(oid)
    return bytes.fromhex(oid)

def compress(data):
    return zlib.compress(data, COMPRESSION_LEVEL)

def decompress(data):
    try:
        return zlib.decompress(data)
    except zlib.error as e:
        raise CorruptObject(f'cannot inflate object: {e}') from e

def frame(type_, payload): #"<type> <len>\0<payload>" is what gets hashed and stored
    if type_ not in TYPES:
        raise ValueError(f'unknown object type {type_!r}')
    return f'{type_} {len(payload)}\x00'.encode() + payload

def parse_frame(obj): #returns (type, payload)
    header, sep, payload = obj.partition(b'\x00')
    if not sep:
        raise CorruptObject('object header is not terminated')
    match = _HEADER.fullmatch(header)
    if match is None:
        raise CorruptObject(f'malformed object header {header[:32]!r}')
    size = int(match.group(2))
    if size != len(payload):
        raise CorruptObject(f'length mismatch: header says {size}, payload has {len(payload)}')
    return match.group(1).decode(), payload

#fan-out: first 2 hex chars are a directory, the other 38 the file name
def object_path(oid):
    oid = id_to_hex(hex_to_id(oid))
    return f'{GIT_DIR}/objects/{oid[:2]}/{oid[2:]}'

def object_exists (oid):
    return os.path.isfile (object_path(oid))

def put(obj): #stores framed bytes and returns their oid
    oid = id_to_hex(digest(obj))
    path = object_path(oid)
    bucket = os.path.dirname(path)
    try:
        try:
            os.mkdir(bucket) #only the fan-out directory; objects/ must already exist
        except FileExistsError:
            pass #another writer may have created it first
        if os.path.isfile(path):
            logger.debug('object %s already present', oid)
            return oid
        # write to a temp file and rename so a reader never sees half an object
        fd, tmp_path = tempfile.mkstemp(dir=bucket, prefix='tmp_obj_')
        try:
            with os.fdopen(fd, 'wb') as out:
                out.write(compress(obj))
            os.chmod(tmp_path, 0o444)
            os.replace(tmp_path, path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
    except OSError as e:
        raise IoFailure(f'cannot write object {oid}: {e}') from e
    logger.debug('stored object %s (%d bytes)', oid, len(obj))
    return oid

def get(oid): #framed bytes back, checked against the oid
    path = object_path(oid)
    try:
        with open(path, 'rb') as f:
            raw = f.read()
    except FileNotFoundError:
        raise ObjectNotFound(oid) from None
    except OSError as e:
        raise IoFailure(f'cannot read object {oid}: {e}') from e
    obj = decompress(raw)
    parse_frame(obj)
    if digest(obj) != hex_to_id(oid):
        raise CorruptObject(f'object {oid} does not match its hash')
    return obj

def hash_object(data, type_='blob', write=True): #frames data and returns the oid, storing it unless write is False
    obj = frame(type_, data)
    if not write:
        return id_to_hex(digest(obj))
    return put(obj)

def get_object(oid, expected='blob'): #gives the payload by passing its oid
    type_, content = parse_frame(get(oid))
    if expected is not None and type_ != expected:
        raise ObjectTypeMismatch(oid, expected, type_)
    return content

def get_object_type(oid):
    return parse_frame(get(oid))[0]

def get_object_size(oid):
    return len(parse_frame(get(oid))[1])
