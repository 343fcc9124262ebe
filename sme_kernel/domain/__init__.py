"""Pure domain core: money arithmetic, purchase drafts, cheque layout, clock."""
