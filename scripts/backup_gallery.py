"""
Script de sauvegarde / restauration de la galerie.

Usage:
    python scripts/backup_gallery.py export [--output DOSSIER_OU_FICHIER]
    python scripts/backup_gallery.py import FICHIER
    python scripts/backup_gallery.py stats FICHIER
    python scripts/backup_gallery.py auto
    python scripts/backup_gallery.py list
    python scripts/backup_gallery.py restore CLE
    python scripts/backup_gallery.py static-snapshot FICHIER
    python scripts/backup_gallery.py artwork list [--category C] [--trash] [--search TEXTE] [--sort title|year|recent]
    python scripts/backup_gallery.py artwork create --title T --description D --category C --image FICHIER_OU_URL
    python scripts/backup_gallery.py artwork trash|restore|purge ID

Chaque modification d'œuvre crée une sauvegarde automatique.

Le store utilisé dépend de KV_CLIENT_MODE (local, http ou static).
"""

import argparse
import json
import logging
import mimetypes
import sys
from pathlib import Path

from artgallery.config import Settings
from artgallery.models.artwork import ArtworkView, SortOption
from artgallery.repositories.artwork_repo import ArtworkRepository, ArtworkValidationError
from artgallery.services.backup import BackupError, BackupService
from artgallery.services.images import ImageValidationError, store_uploaded_image
from artgallery.storage.client import KVStoreError, create_kv_store


def print_stats(stats):
    print(f"  🖼️  Œuvres: {stats.total_artworks} (actives: {stats.active_artworks}, corbeille: {stats.deleted_artworks})")
    print(f"  📷 Images: {stats.total_images}")
    print(f"  💾 Taille: {stats.backup_size}")
    print(f"  📅 Date: {stats.export_date}")


def run(args, service: BackupService) -> int:
    if args.command == "artwork":
        return run_artwork(args, service)

    elif args.command == "export":
        snapshot = service.export()
        path = service.download(snapshot, args.output)
        print(f"✅ Sauvegarde exportée: {path}")
        print_stats(service.stats(snapshot))
        missing = service.missing_images(snapshot)
        if missing:
            print(f"⚠️  {len(missing)} image(s) référencée(s) absente(s) du store:")
            for key in missing:
                print(f"  • {key}")

    elif args.command == "import":
        snapshot = service.parse(Path(args.file).read_text(encoding="utf-8"))
        service.import_snapshot(snapshot)
        print(f"✅ Sauvegarde importée depuis {args.file}")
        print_stats(service.stats(snapshot))

    elif args.command == "stats":
        snapshot = service.parse(Path(args.file).read_text(encoding="utf-8"))
        print(f"📊 {args.file}")
        print_stats(service.stats(snapshot))

    elif args.command == "auto":
        key = service.create_automatic_backup()
        if key is None:
            print("❌ Échec de la sauvegarde automatique")
            return 1
        print(f"✅ Sauvegarde automatique créée: {key}")

    elif args.command == "list":
        backups = service.list_automatic_backups()
        if not backups:
            print("Aucune sauvegarde automatique")
        for backup in backups:
            print(f"  • {backup.key}  {backup.date.strftime('%d/%m/%Y %H:%M')}  "
                  f"{backup.stats.total_artworks} œuvre(s), {backup.stats.backup_size}")

    elif args.command == "restore":
        service.restore_from_automatic_backup(args.key)
        print(f"✅ Galerie restaurée depuis {args.key}")

    elif args.command == "static-snapshot":
        snapshot = service.export_static_snapshot()
        Path(args.file).write_text(json.dumps(snapshot, indent=2, ensure_ascii=False), encoding="utf-8")
        print(f"✅ Instantané statique écrit: {args.file} ({len(snapshot)} clé(s))")

    return 0


def print_artwork(artwork):
    details = ", ".join(v for v in (artwork.year, artwork.medium, artwork.dimensions) if v)
    deleted = f"  🗑️  {artwork.deleted_at}" if artwork.is_deleted else ""
    print(f"  • [{artwork.id}] {artwork.title} ({artwork.category.value}){' - ' + details if details else ''}{deleted}")


def resolve_image_argument(store, image: str) -> str:
    """Un fichier local est envoyé dans le store, sinon la valeur est une URL ou une clé /images/"""
    path = Path(image)
    if not path.is_file():
        return image
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return store_uploaded_image(store, path.name, path.read_bytes(), content_type)


def run_artwork(args, service: BackupService) -> int:
    store = service.store
    repo = ArtworkRepository(store)

    # Sauvegarde initiale si aucune n'existe, puis une sauvegarde après chaque modification
    service.ensure_initial_backup()
    repo.on_change(lambda _artworks: service.create_automatic_backup())

    if args.action == "list":
        view = ArtworkView.TRASH if args.trash else ArtworkView.ACTIVE
        artworks = repo.list_by_category(args.category, view=view, search=args.search, sort_by=args.sort)
        print(f"📋 {len(artworks)} œuvre(s)")
        for artwork in artworks:
            print_artwork(artwork)

    elif args.action == "create":
        artwork = repo.create({
            "title": args.title,
            "description": args.description,
            "category": args.category,
            "imageUrl": resolve_image_argument(store, args.image) if args.image else "",
            "year": args.year,
            "medium": args.medium,
            "dimensions": args.dimensions,
        })
        print(f"✅ Œuvre ajoutée: {artwork.id}")
        print_artwork(artwork)

    elif args.action in ("trash", "restore"):
        operation = repo.trash if args.action == "trash" else repo.restore
        artwork = operation(args.id)
        if artwork is None:
            print(f"❌ Œuvre introuvable: {args.id}")
            return 1
        print(f"✅ {'Mise à la corbeille' if args.action == 'trash' else 'Restaurée'}: {artwork.title}")

    elif args.action == "purge":
        if not repo.purge(args.id):
            print(f"❌ Suppression impossible (introuvable ou hors corbeille): {args.id}")
            return 1
        print(f"✅ Supprimée définitivement: {args.id}")

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Sauvegarde, restauration et gestion des œuvres de la galerie')
    sub = parser.add_subparsers(dest='command', required=True)

    export = sub.add_parser('export', help='Exporter œuvres et images dans un fichier JSON')
    export.add_argument('--output', help='Dossier ou fichier de destination (défaut: dossier courant)')

    imp = sub.add_parser('import', help='Remplacer la galerie par le contenu d\'une sauvegarde')
    imp.add_argument('file')

    stats = sub.add_parser('stats', help='Afficher les statistiques d\'une sauvegarde')
    stats.add_argument('file')

    sub.add_parser('auto', help='Créer une sauvegarde automatique (5 conservées)')
    sub.add_parser('list', help='Lister les sauvegardes automatiques')

    restore = sub.add_parser('restore', help='Restaurer une sauvegarde automatique')
    restore.add_argument('key')

    static = sub.add_parser('static-snapshot', help='Écrire la table plate pour l\'hébergement statique')
    static.add_argument('file')

    artwork = sub.add_parser('artwork', help='Gérer les œuvres (chaque modification crée une sauvegarde automatique)')
    actions = artwork.add_subparsers(dest='action', required=True)

    listing = actions.add_parser('list', help='Lister les œuvres')
    listing.add_argument('--category', default='all', help='sculptures, verres, peintures ou all')
    listing.add_argument('--trash', action='store_true', help='Afficher la corbeille')
    listing.add_argument('--search', help='Texte cherché dans titre, description, technique et année')
    listing.add_argument('--sort', choices=[option.value for option in SortOption])

    create = actions.add_parser('create', help='Ajouter une œuvre')
    create.add_argument('--title', default='')
    create.add_argument('--description', default='')
    create.add_argument('--category', default='')
    create.add_argument('--image', help='Fichier image local, URL ou clé /images/...')
    create.add_argument('--year')
    create.add_argument('--medium')
    create.add_argument('--dimensions')

    for action, help_text in (('trash', 'Mettre une œuvre à la corbeille'),
                              ('restore', 'Sortir une œuvre de la corbeille'),
                              ('purge', 'Supprimer définitivement une œuvre de la corbeille')):
        actions.add_parser(action, help=help_text).add_argument('id')
    return parser


def main(argv=None, store=None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)

    store = store or create_kv_store(settings)
    try:
        return run(args, BackupService(store))
    except (BackupError, KVStoreError, ArtworkValidationError, ImageValidationError, ValueError, OSError) as e:
        print(f"❌ Erreur: {e}")
        return 1
    finally:
        store.close()


if __name__ == '__main__':
    sys.exit(main())
