"""
Inference script for handwritten character recognition with a CTC model
"""

import argparse
import json
from pathlib import Path

import editdistance
import torch
from PIL import Image

from ink_ctc import (EmptyInkError, InkRecognizer, PasteMode, PreprocessConfig,
                     SegmentationConfig, VariantConfig)

IMAGE_EXTENSIONS = ['.jpg', '.jpeg', '.png', '.bmp', '.tiff']
DECODE_MODES = ['greedy', 'beam', 'single', 'multi']


def calculate_cer(predicted, ground_truth):
    """Character Error Rate using edit distance"""
    if len(ground_truth) == 0:
        return 0.0 if len(predicted) == 0 else 1.0
    return editdistance.eval(predicted, ground_truth) / len(ground_truth)


def calculate_corpus_cer(predictions, ground_truths):
    """Total edit distance over total reference length"""
    total_distance = 0
    total_length = 0
    for pred, gt in zip(predictions, ground_truths):
        total_distance += editdistance.eval(pred, gt)
        total_length += len(gt)
    if total_length == 0:
        return 0.0
    return total_distance / total_length


def unknown_characters(text, vocab):
    """Characters of text the vocabulary cannot produce, in first-seen order"""
    unknown = []
    for ch in text:
        if vocab.char_to_id(ch) == vocab.blank and ch not in unknown:
            unknown.append(ch)
    return unknown


def load_ground_truth(image_path):
    """Load ground truth text stored next to the image as .txt"""
    gt_path = Path(image_path).with_suffix('.txt')
    if gt_path.exists():
        with open(gt_path, 'r', encoding='utf-8') as f:
            return f.read().strip()
    return None


def predict_single_image(recognizer, image_path, decode_mode='greedy', top_k=5,
                         beam_width=25, per_step_top=25, variants=True):
    """Recognize one image file.

    Returns a dict with the best 'text' and, except for greedy decoding,
    the ranked 'candidates' as {text, percent} records.
    """
    image = Image.open(image_path)
    image.load()

    if decode_mode == 'greedy':
        return {'text': recognizer.infer(image), 'candidates': []}

    if decode_mode == 'beam':
        candidates = recognizer.infer_beam_top_k(
            image, top_k=top_k, beam_width=beam_width, per_step_top=per_step_top)
        text = candidates[0].text if candidates else ''
    elif decode_mode == 'single':
        candidates = recognizer.infer_top_k(image, top_k=top_k)
        text = candidates[0].text if candidates else ''
    else:
        variant_config = VariantConfig() if variants else None
        multi = recognizer.recognize_multi(image, SegmentationConfig(), top_k=top_k,
                                           variant_config=variant_config)
        candidates = multi.candidates
        text = multi.composed_text

    return {
        'text': text,
        'candidates': [{'text': c.text, 'percent': round(c.percent, 4)} for c in candidates],
    }


def batch_inference(recognizer, image_dir, output_file, **predict_kwargs):
    """Run inference on all images in a directory"""
    image_dir = Path(image_dir)
    image_files = sorted(p for p in image_dir.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS)
    print(f"Found {len(image_files)} images to process")

    results = []
    predictions = []
    ground_truths = []

    for image_file in image_files:
        print(f"Processing: {image_file.name}")
        try:
            prediction = predict_single_image(recognizer, image_file, **predict_kwargs)
        except EmptyInkError:
            print(f"  Nothing drawn in {image_file.name}")
            results.append({'image_path': str(image_file), 'image_name': image_file.name,
                            'error': 'empty'})
            continue
        except Exception as e:
            print(f"  Error processing {image_file.name}: {e}")
            results.append({'image_path': str(image_file), 'image_name': image_file.name,
                            'error': str(e)})
            continue

        ground_truth = load_ground_truth(image_file)
        result = {
            'image_path': str(image_file),
            'image_name': image_file.name,
            'prediction': prediction['text'],
            'candidates': prediction['candidates'],
            'ground_truth': ground_truth,
        }
        print(f"  Prediction: {prediction['text']}")
        if ground_truth is not None:
            result['cer'] = calculate_cer(prediction['text'], ground_truth)
            predictions.append(prediction['text'])
            ground_truths.append(ground_truth)
            print(f"  Ground Truth: {ground_truth}")
            print(f"  CER: {result['cer']:.3f}")
            unknown = unknown_characters(ground_truth, recognizer.vocab)
            if unknown:
                result['unknown_characters'] = unknown
                print(f"  Not in vocabulary: {''.join(unknown)}")
        results.append(result)

    if ground_truths:
        summary = {
            'corpus_cer': calculate_corpus_cer(predictions, ground_truths),
            'samples_with_ground_truth': len(ground_truths),
            'total_samples': len(image_files),
        }
    else:
        summary = {'note': 'No ground truth files found for metric calculation'}

    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump({'summary': summary, 'detailed_results': results}, f, indent=2, ensure_ascii=False)
    print(f"\nResults saved to: {output_file}")

    if 'corpus_cer' in summary:
        print(f"Corpus CER ({summary['samples_with_ground_truth']} samples): {summary['corpus_cer']:.3f}")
    return results


def build_parser():
    parser = argparse.ArgumentParser(description='Handwritten character recognition inference')
    parser.add_argument('--checkpoint', type=str, required=True,
                        help='Path to TorchScript model')
    parser.add_argument('--vocab', type=str, required=True,
                        help='Path to vocabulary JSON with an "itos" list')
    parser.add_argument('--image', type=str,
                        help='Path to single image for inference')
    parser.add_argument('--image_dir', type=str,
                        help='Directory containing images for batch inference')
    parser.add_argument('--output', type=str, default='inference_results.json',
                        help='Output file for results')
    parser.add_argument('--decode_mode', type=str, default='greedy', choices=DECODE_MODES,
                        help='greedy, beam (multi-character), single (one character) or multi (segmented)')
    parser.add_argument('--top_k', type=int, default=5, help='Number of candidates')
    parser.add_argument('--beam_width', type=int, default=25, help='Beam width for beam search')
    parser.add_argument('--per_step_top', type=int, default=25,
                        help='Ids expanded per time step in beam search')
    parser.add_argument('--paste_mode', type=str, default='left', choices=['left', 'center'],
                        help='Horizontal placement on the model canvas')
    parser.add_argument('--no_variants', action='store_true',
                        help='Do not add small kana and voiced variants in multi mode')
    parser.add_argument('--invert', action='store_true',
                        help='Feed inverted input (white=0, black=1)')
    parser.add_argument('--device', type=str, default=None,
                        help='Torch device (default: cuda when available)')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    if not args.image and not args.image_dir:
        print("Please provide either --image or --image_dir")
        return 1

    device = args.device or ('cuda' if torch.cuda.is_available() else 'cpu')
    print(f"Using device: {device}")

    config = PreprocessConfig(paste_mode=PasteMode(args.paste_mode), invert_input=args.invert)
    print("Loading model...")
    recognizer = InkRecognizer.from_files(args.checkpoint, args.vocab, config=config, device=device)
    print(f"Model loaded with vocabulary size: {recognizer.vocab.size}")

    predict_kwargs = {
        'decode_mode': args.decode_mode,
        'top_k': args.top_k,
        'beam_width': args.beam_width,
        'per_step_top': args.per_step_top,
        'variants': not args.no_variants,
    }

    if args.image:
        print(f"\nProcessing single image: {args.image}")
        try:
            prediction = predict_single_image(recognizer, args.image, **predict_kwargs)
        except EmptyInkError:
            print("Nothing drawn, draw something first")
            return 1

        result = {'image_path': args.image, 'prediction': prediction['text'],
                  'candidates': prediction['candidates']}
        print(f"\nPrediction: {prediction['text']}")
        for c in prediction['candidates']:
            print(f"  {c['text']}: {c['percent']:.1f}%")

        ground_truth = load_ground_truth(args.image)
        if ground_truth is not None:
            result['ground_truth'] = ground_truth
            result['cer'] = calculate_cer(prediction['text'], ground_truth)
            print(f"Ground Truth: {ground_truth}")
            print(f"CER: {result['cer']:.3f}")
            unknown = unknown_characters(ground_truth, recognizer.vocab)
            if unknown:
                result['unknown_characters'] = unknown
                print(f"Not in vocabulary: {''.join(unknown)}")

        with open(args.output, 'w', encoding='utf-8') as f:
            json.dump(result, f, indent=2, ensure_ascii=False)
    else:
        print(f"\nProcessing images in directory: {args.image_dir}")
        results = batch_inference(recognizer, args.image_dir, args.output, **predict_kwargs)
        successful = sum(1 for r in results if 'error' not in r)
        print("\nSummary:")
        print(f"Total images: {len(results)}")
        print(f"Successful: {successful}")
        print(f"Failed: {len(results) - successful}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
