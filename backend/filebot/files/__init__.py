"""File ingestion module for FileBot.

This module downloads files sent to the bot, classifies them and stores them
under the downloads root, one bucket directory per category:
- Photos: image/* content types
- Videos: video/* content types
- Audio: audio/* content types
- Documents: PDF/office content types or .doc/.docx/.txt/.pdf/.xls/.xlsx/.ppt/.pptx
- Other: everything else

Every stored file gets exactly one FileRecord in the catalog.
"""
