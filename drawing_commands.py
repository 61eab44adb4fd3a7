"""
Drawing cleanup commands for DXF documents.

Commands:
- flatten_poly_normals: rewrite LWPOLYLINEs whose extrusion is not (0, 0, 1)
  so they lie directly in the WCS XY plane (see cam_geometry.normals).
- audit_purge: audit the drawing, purge unused table entries and blocks,
  then purge unused registered applications.
- normalize_text_styles: put every TEXT and MTEXT on one text style.

All commands work on a DrawingSession, which wraps an ezdxf document. Changes
live only in memory until DrawingSession.commit() writes the file.
"""

import io
import logging
import os
import shutil
import tempfile
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

import ezdxf
from ezdxf import recover
from ezdxf.document import Drawing
from ezdxf.lldxf.const import DXFError

from cam_geometry.normals import NormalizerConfig, normalize
from cam_geometry.polyline import MalformedEntity, apply_to_lwpolyline, from_lwpolyline
from error_handler import CommandError, CommitError, EntityNotFound, error_handler

logger = logging.getLogger(__name__)

RESERVED_LAYERS = {'0', 'defpoints'}
RESERVED_LINETYPES = {'byblock', 'bylayer', 'continuous'}
RESERVED_STYLES = {'standard'}
RESERVED_APPIDS = {'acad'}
RESERVED_DIMSTYLES = {'standard'}
TEXT_STYLE_TYPES = {'TEXT', 'MTEXT', 'ATTRIB', 'ATTDEF'}
DIMSTYLE_BLOCK_ATTRIBS = ('dimblk', 'dimblk1', 'dimblk2', 'dimldrblk')
DIMSTYLE_LINETYPE_ATTRIBS = ('dimltype', 'dimltex1', 'dimltex2')


class EntityKind(Enum):
    """Entity kinds the commands know how to handle"""
    LWPOLYLINE = 'LWPOLYLINE'
    TEXT = 'TEXT'
    MTEXT = 'MTEXT'

    @classmethod
    def of(cls, entity) -> Optional['EntityKind']:
        try:
            return cls(entity.dxftype())
        except ValueError:
            return None


@dataclass
class CommandResult:
    """Outcome of one drawing command"""
    command: str
    processed: int = 0
    modified: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)
    message: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DrawingSession:
    """Read/write access to the entities of one DXF document"""

    def __init__(self, doc: Drawing, source: Optional[str] = None):
        self.doc = doc
        self.source = source

    @classmethod
    def from_file(cls, path) -> 'DrawingSession':
        doc = ezdxf.readfile(str(path))
        logger.info(f"Loaded DXF file: {path} (version {doc.dxfversion})")
        return cls(doc, source=str(path))

    @classmethod
    def from_bytes(cls, data: bytes, name: str = '<upload>') -> 'DrawingSession':
        """Load a DXF from raw bytes, repairing what ezdxf's recover mode can"""
        doc, auditor = recover.read(io.BytesIO(data))
        if auditor.has_errors:
            logger.warning(f"{name}: {len(auditor.errors)} unrecoverable errors while loading")
        logger.info(f"Loaded DXF upload: {name} (version {doc.dxfversion})")
        return cls(doc, source=name)

    def select(self, *kinds: EntityKind, layout=None) -> List[str]:
        """Handles of the layout entities of the given kinds, in layout order"""
        if not kinds:
            return []
        layout = layout if layout is not None else self.doc.modelspace()
        query = ' '.join(kind.value for kind in kinds)
        return [entity.dxf.handle for entity in layout.query(query)]

    def open_for_write(self, handle: str):
        entity = self.doc.entitydb.get(handle)
        if entity is None or not entity.is_alive:
            raise EntityNotFound(f"No entity with handle {handle}")
        return entity

    def commit(self, path=None) -> Path:
        """
        Write the document to path (default: the file it was loaded from).

        The file is written next to the target and moved into place, so a
        failed commit leaves the previous file untouched. An existing
        target keeps its permission bits.
        """
        target = path or self.source
        if not target or str(target).startswith('<'):
            raise CommitError("No target path for commit")
        target = Path(target)
        fd, tmp_name = tempfile.mkstemp(suffix='.dxf', dir=str(target.parent or Path('.')))
        os.close(fd)
        try:
            self.doc.saveas(tmp_name)
            if target.exists():
                shutil.copymode(str(target), tmp_name)
            os.replace(tmp_name, target)
        except (OSError, DXFError) as e:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise CommitError(f"Failed to write {target}: {e}") from e
        self.doc.filename = str(target)
        self.source = str(target)
        logger.info(f"Committed drawing to {target}")
        return target

    def to_bytes(self) -> bytes:
        """DXF file content, characters outside the code page as \\U+XXXX escapes"""
        stream = io.StringIO()
        self.doc.write(stream)
        return self.doc.encode(stream.getvalue())


def flatten_poly_normals(session: DrawingSession,
                         handles: Optional[Iterable[str]] = None,
                         config: Optional[NormalizerConfig] = None) -> CommandResult:
    """
    Flatten the normals of the selected LWPOLYLINEs to (0, 0, 1).

    Args:
        session: drawing to work on
        handles: candidate entity handles, all modelspace LWPOLYLINEs if None
        config: normalizer configuration

    Returns:
        CommandResult, modified is the number of polylines fixed
    """
    result = CommandResult(command='FlattenPolyNormals')
    handles = list(handles) if handles is not None else session.select(EntityKind.LWPOLYLINE)
    if not handles:
        result.message = 'No objects selected'
        logger.info(result.message)
        return result

    for handle in handles:
        entity = session.open_for_write(handle)
        if EntityKind.of(entity) is not EntityKind.LWPOLYLINE:
            result.skipped += 1
            continue

        result.processed += 1
        polyline = from_lwpolyline(entity)
        try:
            if normalize(polyline, config):
                apply_to_lwpolyline(polyline, entity)
                result.modified += 1
        except MalformedEntity as e:
            result.errors.append(str(e))
            error_handler.log_error('geometry_error', e, {'operation': result.command, 'handle': handle})

    result.message = f"Fixed {result.modified} inverted polyline normals."
    logger.info(result.message)
    return result


def _walk_entities(doc: Drawing):
    """Every graphical entity in every block and layout, attribs included"""
    for block in doc.blocks:
        yield block.block
        for entity in block:
            yield entity
            if entity.dxftype() == 'INSERT':
                yield from entity.attribs


def _purge_table(table, used: Set[str], reserved: Set[str]) -> List[str]:
    purged = []
    for entry in list(table):
        name = entry.dxf.name
        key = name.lower()
        if not name or key in reserved or key in used:
            continue
        table.remove(name)
        purged.append(name)
    return purged


def _table_name(doc: Drawing, value, dxftype: str = 'STYLE') -> str:
    """Table entry name from a name or a handle of a dxftype entry"""
    value = str(value)
    entity = doc.entitydb.get(value)
    if entity is not None and entity.dxftype() == dxftype:
        return entity.dxf.name
    return value


def _linetype_styles(doc: Drawing, linetype) -> Set[str]:
    """Text styles referenced by the shapes and text of a complex linetype"""
    return {
        _table_name(doc, tag.value).lower()
        for tag in linetype.pattern_tags.tags
        if tag.code == 340
    }


def _used_names(doc: Drawing) -> Dict[str, Set[str]]:
    used = {
        'layers': {doc.header.get('$CLAYER', '0').lower()},
        'linetypes': {doc.header.get('$CELTYPE', 'ByLayer').lower()},
        'styles': {doc.header.get('$TEXTSTYLE', 'Standard').lower()},
        'blocks': set(),
        'dimstyles': {doc.header.get('$DIMSTYLE', 'Standard').lower()},
    }
    for entity in _walk_entities(doc):
        layer = entity.dxf.get('layer')
        if layer:
            used['layers'].add(layer.lower())
        if entity.dxf.is_supported('linetype'):
            linetype = entity.dxf.get('linetype')
            if linetype:
                used['linetypes'].add(linetype.lower())
        if entity.dxftype() in TEXT_STYLE_TYPES:
            used['styles'].add(entity.dxf.get('style', 'Standard').lower())
        if entity.dxftype() == 'INSERT':
            used['blocks'].add(entity.dxf.name.lower())
        # DIMENSION (all subtypes), LEADER and TOLERANCE
        if entity.dxf.is_supported('dimstyle'):
            used['dimstyles'].add(entity.dxf.get('dimstyle', 'Standard').lower())

    for layer in doc.layers:
        used['linetypes'].add(layer.dxf.get('linetype', 'Continuous').lower())
    for linetype in doc.linetypes:
        used['styles'].update(_linetype_styles(doc, linetype))
    for dimstyle in doc.dimstyles:
        if dimstyle.dxf.is_supported('dimtxsty'):
            used['styles'].add(_table_name(doc, dimstyle.dxf.get('dimtxsty', 'Standard')).lower())
        for key in DIMSTYLE_BLOCK_ATTRIBS:
            if dimstyle.dxf.is_supported(key) and dimstyle.dxf.get(key):
                used['blocks'].add(dimstyle.dxf.get(key).lower())
        for key in DIMSTYLE_LINETYPE_ATTRIBS:
            if dimstyle.dxf.is_supported(key) and dimstyle.dxf.get(key):
                used['linetypes'].add(_table_name(doc, dimstyle.dxf.get(key), 'LTYPE').lower())
    return used


def _purge_blocks(doc: Drawing) -> List[str]:
    """Delete unreferenced named blocks, repeating until nested ones are gone too"""
    purged = []
    while True:
        used = _used_names(doc)['blocks']
        unused = [
            block.name for block in doc.blocks
            if not block.is_any_layout
            and not block.name.startswith('*')
            and block.name.lower() not in used
        ]
        if not unused:
            return purged
        for name in unused:
            doc.blocks.delete_block(name, safe=False)
            purged.append(name)


def _purge_appids(doc: Drawing) -> List[str]:
    used = {
        appid.lower()
        for entity in doc.entitydb.values()
        if entity.is_alive and entity.xdata
        for appid in entity.xdata.data
    }
    return _purge_table(doc.appids, used, RESERVED_APPIDS)


def audit_purge(session: DrawingSession) -> CommandResult:
    """
    Audit the drawing and purge everything unused.

    Order: audit (fixing what can be fixed), purge dimension styles, blocks,
    layers, text styles and linetypes, then purge registered applications.
    """
    doc = session.doc
    result = CommandResult(command='AuditPurge')

    auditor = doc.audit()
    result.details['audit_fixes'] = len(auditor.fixes)
    result.details['audit_errors'] = len(auditor.errors)
    for error in auditor.errors:
        result.errors.append(error.message)

    dimstyles = _purge_table(doc.dimstyles, _used_names(doc)['dimstyles'], RESERVED_DIMSTYLES)
    blocks = _purge_blocks(doc)
    used = _used_names(doc)
    layers = _purge_table(doc.layers, used['layers'], RESERVED_LAYERS)
    styles = _purge_table(doc.styles, used['styles'], RESERVED_STYLES)
    # Layers are gone by now, so their linetypes no longer count as used
    used = _used_names(doc)
    linetypes = _purge_table(doc.linetypes, used['linetypes'], RESERVED_LINETYPES)
    appids = _purge_appids(doc)

    result.details.update({
        'blocks': len(blocks),
        'layers': len(layers),
        'styles': len(styles),
        'linetypes': len(linetypes),
        'appids': len(appids),
        'dimstyles': len(dimstyles),
    })
    purged = dimstyles + blocks + layers + styles + linetypes + appids
    result.modified = len(purged)
    result.message = (
        f"Audit: {result.details['audit_fixes']} fixes, {result.details['audit_errors']} errors. "
        f"Purged {result.modified} unused items."
    )
    for name in purged:
        logger.debug(f"Purged {name}")
    logger.info(result.message)
    return result


def normalize_text_styles(session: DrawingSession, style: Optional[str] = None) -> CommandResult:
    """
    Set every modelspace TEXT and MTEXT to one text style.

    Args:
        session: drawing to work on
        style: text style name, the drawing's current style ($TEXTSTYLE) if None

    Raises:
        CommandError: if the style does not exist in the drawing
    """
    doc = session.doc
    style = style or doc.header.get('$TEXTSTYLE', 'Standard')
    if not doc.styles.has_entry(style):
        raise CommandError(f"Text style {style!r} does not exist in the drawing")

    result = CommandResult(command='NormalizeTextStyles')
    handles = session.select(EntityKind.TEXT, EntityKind.MTEXT)
    if not handles:
        result.message = 'No text entities found'
        logger.info(result.message)
        return result

    for handle in handles:
        entity = session.open_for_write(handle)
        result.processed += 1
        if entity.dxf.get('style', 'Standard') != style:
            entity.dxf.style = style
            result.modified += 1

    result.details['style'] = style
    result.message = f"All {result.processed} text entities changed to style {style}"
    logger.info(result.message)
    return result
